"""Extract and validate the JSON payload of a vision model reply.

Model output is untrusted text. It is supposed to hold exactly one JSON
object but may be wrapped in prose or markdown code fences. Extraction
isolates the object; validation enforces only the minimum shape needed for
a safe recommendation (the dosage recalculator is the real safety net).
"""

import json
import math
import re
from enum import StrEnum, auto
from typing import Any

from pydantic import ValidationError

from carblens.core.errors import (
    ExtractionError,
    IncompleteResponseError,
    MalformedJsonError,
)
from carblens.logging_config import get_logger
from carblens.schemas.analysis import Analysis

logger = get_logger(__name__)

# Opening (optionally labeled, e.g. ```json) and closing fence markers
FENCE_PATTERN = re.compile(r"```[A-Za-z0-9_+-]*")


class ExtractionStrategy(StrEnum):
    """How the JSON object is located inside a reply.

    ``greedy``: first ``{`` to last ``}``. Compatible with earlier releases;
    mis-extracts when a reply holds several objects or stray braces.

    ``balanced``: first brace-balanced span (string-aware). Picks the first
    of several objects instead of spanning all of them.
    """

    greedy = auto()
    balanced = auto()


def strip_fences(raw: str) -> str:
    """Remove every code fence marker and surrounding whitespace."""
    return FENCE_PATTERN.sub("", raw).strip()


def _balanced_span(text: str, start: int) -> str | None:
    """Return the brace-balanced span opening at ``start``, if it closes."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def _extract_balanced(text: str) -> str | None:
    # Prefer the first balanced span that is a JSON object; fall back to the
    # first balanced span so the validator can report it as malformed.
    first_span: str | None = None
    start = text.find("{")
    while start != -1:
        span = _balanced_span(text, start)
        if span is not None:
            if first_span is None:
                first_span = span
            try:
                if isinstance(json.loads(span), dict):
                    return span
            except json.JSONDecodeError:
                pass
        start = text.find("{", start + 1)
    return first_span


def extract_json(
    raw: str,
    strategy: ExtractionStrategy = ExtractionStrategy.greedy,
) -> str:
    """Isolate the JSON object text inside a model reply.

    Args:
        raw: The model's reply, verbatim.
        strategy: Location heuristic (see ExtractionStrategy).

    Returns:
        The candidate JSON text, braces included. Not yet parsed.

    Raises:
        ExtractionError: If no ``{``...``}`` span exists.
    """
    text = strip_fences(raw)

    if strategy == ExtractionStrategy.balanced:
        span = _extract_balanced(text)
        if span is None:
            raise ExtractionError(detail=raw)
        return span

    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last < first:
        raise ExtractionError(detail=raw)
    return text[first : last + 1]


def _first_present(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _is_carb_quantity(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )


def find_missing_fields(data: dict[str, Any]) -> list[str]:
    """Names of required fields that are absent or unusable."""
    missing = []

    foods = data.get("foods")
    if not isinstance(foods, list) or not foods:
        missing.append("foods")

    if not _is_carb_quantity(_first_present(data, "totalCarbs", "total_carbs")):
        missing.append("totalCarbs")

    if not isinstance(_first_present(data, "mealInsulin", "meal_insulin"), dict):
        missing.append("mealInsulin")

    return missing


def parse_analysis(json_text: str) -> Analysis:
    """Parse extracted JSON text into an Analysis.

    Extra fields are kept; optional fields are default-filled
    (``warnings`` becomes ``[]``, absent ``correction``/``recommendation``
    become empty objects awaiting recomputation).

    Raises:
        MalformedJsonError: If the text is not a JSON object.
        IncompleteResponseError: If foods, totalCarbs or mealInsulin is
            missing or unusable, or nested data fails validation.
    """
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise MalformedJsonError(detail=json_text) from e

    if not isinstance(data, dict):
        raise MalformedJsonError(
            "AI response is not a JSON object", detail=json_text
        )

    missing = find_missing_fields(data)
    if missing:
        raise IncompleteResponseError(
            f"Incomplete AI response (missing or invalid: {', '.join(missing)})",
            detail=json_text,
        )

    try:
        return Analysis.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "AI response failed schema validation",
            error_count=e.error_count(),
            errors=[
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
        )
        raise IncompleteResponseError(detail=json_text) from e
