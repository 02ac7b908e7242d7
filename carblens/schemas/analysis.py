"""Meal analysis request and response schemas.

Wire format is camelCase (``totalCarbs``, ``userSettings``); Python code uses
snake_case attributes. Both spellings are accepted on input and responses are
serialized by alias.

The Analysis models describe what the vision model is *asked* to return. Only
the minimum shape is enforced here (see services.response_parsing); fields the
server recomputes are parsed leniently because their values are discarded.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Highest glucose reading accepted on a request (mg/dL)
MAX_GLUCOSE_MG_DL = 1500


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModelOutput(CamelModel):
    """Base for objects produced by the vision model.

    Unknown keys are kept so newer prompt contracts pass through untouched.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_number(value: Any) -> float:
    """Best-effort numeric coercion for model-reported values we overwrite."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class UserProfile(CamelModel):
    """A patient's insulin-therapy parameters, supplied per request."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str | None = Field(default=None, description="Display name only")
    insulin_ratio: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Grams of carbohydrate covered by one unit",
    )
    sensitivity_factor: float = Field(
        ..., gt=0, allow_inf_nan=False, description="mg/dL glucose lowered by one unit"
    )
    target_glucose: float = Field(
        ..., gt=0, allow_inf_nan=False, description="Target glucose (mg/dL)"
    )

    @property
    def display_name(self) -> str:
        return self.name or "User"


class AnalysisRequest(CamelModel):
    """Body of ``POST /api/analyze``."""

    image: str | None = Field(
        default=None,
        description="Base64 photograph, optionally prefixed with a data URL header",
    )
    user_settings: UserProfile
    current_glucose: float | None = Field(
        default=None,
        ge=0,
        le=MAX_GLUCOSE_MG_DL,
        allow_inf_nan=False,
        description="Current glucose reading (mg/dL); omit to skip correction",
    )

    @field_validator("current_glucose", mode="before")
    @classmethod
    def blank_glucose_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


_CONFIDENCE_ORDER = {"low": 0, "medium": 1, "high": 2}

_CONFIDENCE_SYNONYMS = {
    "baja": "low",
    "media": "medium",
    "moderate": "medium",
    "alta": "high",
}


class Confidence(StrEnum):
    """Ordered model confidence: low < medium < high."""

    low = "low"
    medium = "medium"
    high = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_ORDER[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Any) -> "Confidence | None":
        """Lenient parse; unknown labels yield None."""
        if isinstance(value, Confidence) or value is None:
            return value
        label = str(value).strip().lower()
        label = _CONFIDENCE_SYNONYMS.get(label, label)
        try:
            return cls(label)
        except ValueError:
            return None


class FoodItem(ModelOutput):
    """A food the model identified in the photograph."""

    name: str = ""
    amount: str = Field(default="", description="Free-text portion description")
    carbs: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Carbohydrate grams"
    )
    confidence: Confidence | None = None

    @field_validator("name", "amount", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def lenient_confidence(cls, v: Any) -> Confidence | None:
        return Confidence.parse(v)


class MealInsulin(ModelOutput):
    """Carbohydrate coverage dose. ``units`` is always recomputed."""

    calculation: str = ""
    units: float = 0.0

    @field_validator("calculation", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("units", mode="before")
    @classmethod
    def coerce_units(cls, v: Any) -> float:
        return _as_number(v)


class Correction(ModelOutput):
    """Correction dose. Fully recomputed from the glucose reading."""

    needed: bool = False
    calculation: str = ""
    units: float = 0.0

    @field_validator("needed", mode="before")
    @classmethod
    def coerce_needed(cls, v: Any) -> bool:
        return v is True

    @field_validator("calculation", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("units", mode="before")
    @classmethod
    def coerce_units(cls, v: Any) -> float:
        return _as_number(v)


class Recommendation(ModelOutput):
    """Recommended dose bounds. Both numbers are recomputed."""

    conservative: float = 0.0
    standard: float = 0.0
    note: str = ""

    @field_validator("note", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("conservative", "standard", mode="before")
    @classmethod
    def coerce_units(cls, v: Any) -> float:
        return _as_number(v)


class Analysis(ModelOutput):
    """A validated meal analysis with server-recomputed dosing."""

    greeting: str | None = None
    image_quality: str | None = None
    confidence: str | None = Field(default=None, description="Advisory only")
    foods: list[FoodItem] = Field(..., min_length=1)
    total_carbs: float = Field(
        ..., ge=0, allow_inf_nan=False, description="Total carbohydrate grams"
    )
    meal_insulin: MealInsulin
    correction: Correction = Field(default_factory=Correction)
    recommendation: Recommendation = Field(default_factory=Recommendation)
    warnings: list[str] = Field(default_factory=list)

    @field_validator("greeting", "image_quality", "confidence", mode="before")
    @classmethod
    def coerce_optional_text(cls, v: Any) -> str | None:
        return None if v is None else _as_text(v)

    @field_validator("correction", "recommendation", mode="before")
    @classmethod
    def null_object_is_default(cls, v: Any) -> Any:
        return {} if v is None or not isinstance(v, dict | BaseModel) else v

    @field_validator("warnings", mode="before")
    @classmethod
    def coerce_warnings(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        if isinstance(v, list):
            return [_as_text(w) for w in v if w is not None]
        return [_as_text(v)]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class AnalyzeResponse(CamelModel):
    """Successful ``POST /api/analyze`` response."""

    success: bool = True
    analysis: Analysis
    timestamp: datetime


class StatusResponse(CamelModel):
    """``GET /`` liveness response."""

    status: str = "ok"
    message: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error body for documented failure responses."""

    error: str = Field(..., description="Short machine-facing summary")
    message: str | None = Field(default=None, description="Human-readable detail")
    kind: str | None = Field(default=None, description="Failure category")
