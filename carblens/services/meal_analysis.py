"""Meal photo analysis pipeline.

Request -> prompt -> vision model -> JSON extraction -> validation ->
dose recomputation. Any stage may fail; failures are raised as
AnalysisError subclasses and rendered by the HTTP layer. A response is
either fully recomputed or not returned at all.
"""

import base64
import binascii
import re

from carblens.config import Settings, settings
from carblens.core.dosage import recompute
from carblens.core.errors import (
    AnalysisError,
    InvalidImageError,
    MissingInputError,
    classify_error,
)
from carblens.core.prompts import build_prompt, get_ruleset
from carblens.logging_config import get_logger
from carblens.schemas.ai_response import ImagePayload
from carblens.schemas.analysis import Analysis, AnalysisRequest
from carblens.services.ai_client import BaseVisionClient
from carblens.services.inference import infer
from carblens.services.response_parsing import extract_json, parse_analysis

logger = get_logger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"

# e.g. "data:image/png;base64"
_DATA_URL_HEADER = re.compile(r"^data:(?P<media_type>[^;,]+)?")
_WHITESPACE = re.compile(r"\s+")


def decode_image(image: str | None) -> ImagePayload:
    """Turn the request's image field into a validated ImagePayload.

    A ``data:<media-type>;base64,`` prefix is stripped and its media type
    kept; bare base64 is assumed to be JPEG.

    Raises:
        MissingInputError: If no image was supplied.
        InvalidImageError: If the data is not valid base64.
    """
    if image is None or not image.strip():
        raise MissingInputError()

    media_type = DEFAULT_MEDIA_TYPE
    data = image.strip()
    if "base64," in data:
        header, data = data.split(",", 1)
        match = _DATA_URL_HEADER.match(header)
        declared = match.group("media_type") if match else None
        if declared and declared.startswith("image/"):
            media_type = declared

    data = _WHITESPACE.sub("", data)
    if not data:
        raise MissingInputError()

    try:
        base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(detail=str(e)) from e

    return ImagePayload(data=data, media_type=media_type)


async def analyze_meal(
    request: AnalysisRequest,
    ai_client: BaseVisionClient,
    config: Settings = settings,
) -> Analysis:
    """Run the full analysis pipeline for one request.

    The image is checked before anything else, so a request without one
    never reaches the vision model.

    Args:
        request: Validated request body.
        ai_client: Process-wide vision client.
        config: Settings (prompt version, language, parsing, resilience).

    Returns:
        Analysis whose dosing fields were recomputed server-side.

    Raises:
        AnalysisError: Any classified pipeline failure.
    """
    image = decode_image(request.image)
    profile = request.user_settings

    try:
        ruleset = get_ruleset(config.prompt_version)
        prompt = build_prompt(request, ruleset, language=config.response_language)

        logger.info(
            "Analyzing meal photo",
            media_type=image.media_type,
            image_chars=len(image.data),
            prompt_version=ruleset.version.value,
            has_glucose=request.current_glucose is not None,
        )

        with logger.timed("inference", model=ai_client.model):
            response = await infer(
                ai_client,
                image,
                prompt,
                timeout_seconds=config.ai_timeout_seconds,
                max_retries=config.ai_max_retries,
                backoff_seconds=config.ai_retry_backoff_seconds,
            )

        logger.info(
            "Vision model response received",
            model=response.model,
            provider=response.provider.value,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            response_chars=len(response.content),
        )

        with logger.timed("parsing", strategy=config.extraction_strategy.value) as stage:
            json_text = extract_json(response.content, config.extraction_strategy)
            parsed = parse_analysis(json_text)
            stage["json_chars"] = len(json_text)
        analysis = recompute(parsed, profile, request.current_glucose)
    except AnalysisError as e:
        logger.warning(
            "Meal analysis failed",
            kind=e.kind.value,
            reason=e.message,
            detail=e.detail,
        )
        raise
    except Exception as e:
        logger.exception("Unexpected meal analysis failure")
        raise classify_error(e) from e

    logger.info(
        "Meal analysis complete",
        foods=len(analysis.foods),
        total_carbs=analysis.total_carbs,
        meal_units=analysis.meal_insulin.units,
        correction_units=analysis.correction.units,
        standard_units=analysis.recommendation.standard,
    )
    return analysis
