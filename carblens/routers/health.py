"""Liveness endpoints."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from carblens.schemas.analysis import StatusResponse

router = APIRouter(tags=["Health"])

API_MESSAGE = "CarbLens API v1.0 - Running"


@router.get("/", response_model=StatusResponse)
async def root() -> StatusResponse:
    """Root status endpoint.

    Returns:
        {"status": "ok", "message": ..., "timestamp": ...}
    """
    return StatusResponse(message=API_MESSAGE, timestamp=datetime.now(UTC))


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """
    Liveness probe.

    Returns success if the application process is running. Does not call
    the vision provider.
    """
    return {"status": "alive"}
