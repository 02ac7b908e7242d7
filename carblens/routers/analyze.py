"""Meal photo analysis router."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from carblens.config import settings
from carblens.schemas.analysis import AnalysisRequest, AnalyzeResponse, ErrorResponse
from carblens.services.ai_client import BaseVisionClient, get_ai_client
from carblens.services.meal_analysis import analyze_meal

router = APIRouter(prefix="/api", tags=["analysis"])


def get_vision_client(request: Request) -> BaseVisionClient:
    """Return the process-wide vision client created at startup."""
    client = getattr(request.app.state, "ai_client", None)
    if client is None:
        client = get_ai_client(
            settings.ai_provider,
            settings.ai_api_key,
            model=settings.ai_model,
            base_url=settings.ai_base_url,
            max_tokens=settings.ai_max_tokens,
            timeout=settings.ai_timeout_seconds,
        )
        request.app.state.ai_client = client
    return client


VisionClient = Annotated[BaseVisionClient, Depends(get_vision_client)]


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        200: {"description": "Meal analyzed and doses recomputed"},
        400: {"model": ErrorResponse, "description": "No image provided"},
        500: {"model": ErrorResponse, "description": "Analysis failed"},
    },
)
async def analyze(body: AnalysisRequest, ai_client: VisionClient) -> AnalyzeResponse:
    """Estimate carbohydrates in a meal photo and recommend an insulin dose.

    The vision model's reply is treated as untrusted: meal dose, correction
    dose and recommendation bounds are recomputed from the user's settings.
    """
    analysis = await analyze_meal(body, ai_client, settings)
    return AnalyzeResponse(analysis=analysis, timestamp=datetime.now(UTC))
