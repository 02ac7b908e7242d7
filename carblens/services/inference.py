"""Resilient vision model invocation.

The model call is the only I/O in a meal analysis and the only point of
unbounded latency. Each attempt gets its own deadline; transient failures
(timeouts, connection errors, rate limits, provider 5xx) are retried with
exponential backoff. Everything else fails immediately.
"""

import asyncio

import anthropic
import openai

from carblens.core.errors import ModelInvocationError, classify_error
from carblens.logging_config import get_logger
from carblens.schemas.ai_response import AIResponse, ImagePayload
from carblens.services.ai_client import BaseVisionClient

logger = get_logger(__name__)

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _invocation_error(exc: BaseException) -> ModelInvocationError:
    classified = classify_error(exc)
    if isinstance(classified, ModelInvocationError):
        return classified
    return ModelInvocationError(detail=f"{type(exc).__name__}: {exc}")


async def infer(
    client: BaseVisionClient,
    image: ImagePayload,
    prompt: str,
    *,
    timeout_seconds: float | None = 60.0,
    max_retries: int = 2,
    backoff_seconds: float = 1.0,
) -> AIResponse:
    """Call the vision model with a per-attempt timeout and bounded retry.

    Args:
        client: Process-wide vision client.
        image: The meal photograph.
        prompt: Rendered instruction text.
        timeout_seconds: Deadline for each attempt; None disables it.
        max_retries: Retries after the first attempt.
        backoff_seconds: Delay before the first retry, doubled each time.

    Returns:
        The model's normalized response.

    Raises:
        ModelInvocationError: If the call fails with a non-transient error
            or every attempt fails.
    """
    attempts = max(0, max_retries) + 1

    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(
                client.analyze_image(image, prompt), timeout=timeout_seconds
            )
        except RETRYABLE_ERRORS as e:
            if attempt < attempts - 1:
                delay = backoff_seconds * (2**attempt)
                logger.warning(
                    "Vision model call failed, retrying",
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay_seconds=delay,
                    error=f"{type(e).__name__}: {e}",
                )
                await asyncio.sleep(delay)
                continue
            logger.error(
                "Vision model call failed after all attempts",
                attempts=attempts,
                error=f"{type(e).__name__}: {e}",
            )
            raise _invocation_error(e) from e
        except Exception as e:
            logger.error(
                "Vision model call failed",
                error=f"{type(e).__name__}: {e}",
            )
            raise _invocation_error(e) from e

    # range(attempts) is never empty
    raise ModelInvocationError()
