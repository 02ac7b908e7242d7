"""Meal analysis error taxonomy.

Each pipeline stage raises one of these exceptions. The HTTP layer renders
them through a single exception handler, so a failure is always reported as
a structured error body and never as a raw crash.
"""

from enum import StrEnum, auto
from typing import Any, ClassVar

import anthropic
import openai
from fastapi import status

# Diagnostic snippets are truncated before they reach the logs
MAX_DETAIL_CHARS = 500

ANALYSIS_FAILED_SUMMARY = "Error analyzing image"


class ErrorKind(StrEnum):
    """Response-facing failure categories."""

    missing_input = auto()
    model_invocation = auto()
    extraction = auto()
    malformed_json = auto()
    incomplete_response = auto()
    internal = auto()


def truncate_detail(text: str | None, limit: int = MAX_DETAIL_CHARS) -> str | None:
    """Cut a diagnostic snippet down to ``limit`` characters."""
    if text is None or len(text) <= limit:
        return text
    return text[:limit] + "..."


class AnalysisError(Exception):
    """Base class for every failure surfaced by the analysis pipeline.

    Attributes:
        message: Human-readable explanation, safe to return to clients.
        detail: Optional diagnostic payload (e.g. the offending model text).
            Logged only, never rendered in a response body.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.internal
    status_code: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    summary: ClassVar[str] = ANALYSIS_FAILED_SUMMARY
    default_message: ClassVar[str] = "Internal server error"

    def __init__(self, message: str | None = None, *, detail: str | None = None):
        self.message = message or self.default_message
        self.detail = truncate_detail(detail)
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        """Build the JSON body returned to the caller."""
        if self.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
            return {"error": self.summary}
        return {
            "error": self.summary,
            "message": self.message,
            "kind": self.kind.value,
        }


class MissingInputError(AnalysisError):
    """The client supplied no image."""

    kind = ErrorKind.missing_input
    status_code = status.HTTP_400_BAD_REQUEST
    summary = "No image provided"
    default_message = "No image provided"


class InvalidImageError(MissingInputError):
    """The client supplied an image that is not decodable base64."""

    summary = "Invalid image data"
    default_message = "Image is not valid base64 data"


class ModelInvocationError(AnalysisError):
    """The external vision model call failed or timed out."""

    kind = ErrorKind.model_invocation
    default_message = "AI service unavailable"


class ExtractionError(AnalysisError):
    """The model reply contains no JSON object."""

    kind = ErrorKind.extraction
    default_message = "Invalid AI response format"


class MalformedJsonError(AnalysisError):
    """The extracted span is not parseable JSON."""

    kind = ErrorKind.malformed_json
    default_message = "Invalid AI response format"


class IncompleteResponseError(AnalysisError):
    """The JSON parsed but lacks the fields a recommendation requires."""

    kind = ErrorKind.incomplete_response
    default_message = "Incomplete AI response"


# SDK exceptions that mean the model call itself failed
_PROVIDER_ERRORS: tuple[type[Exception], ...] = (
    anthropic.APIError,
    openai.APIError,
)


def classify_error(exc: BaseException) -> AnalysisError:
    """Map any exception raised during analysis to an AnalysisError.

    Already-classified errors are returned unchanged. Timeouts and provider
    SDK errors become ModelInvocationError; anything else is reported as a
    generic internal failure.
    """
    if isinstance(exc, AnalysisError):
        return exc
    if isinstance(exc, TimeoutError):
        return ModelInvocationError("AI service timed out", detail=str(exc) or None)
    if isinstance(exc, _PROVIDER_ERRORS):
        return ModelInvocationError(detail=f"{type(exc).__name__}: {exc}")
    return AnalysisError(detail=f"{type(exc).__name__}: {exc}")
