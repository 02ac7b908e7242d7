"""Server-side insulin dose recomputation.

The vision model's own dosing arithmetic is never trusted. Given a
structurally valid Analysis, this module overwrites the meal dose, the
correction dose and the recommendation bounds using fixed formulas:

    meal units        = ceil(total_carbs / insulin_ratio)
    correction units  = round_half_up((glucose - target) / sensitivity, 0.1)
                        only when a reading is present and above target
    standard          = meal units + correction units
    conservative      = max(0, standard - 0.5)

The model's carbohydrate figures (``foods[].carbs``, ``total_carbs``) are
taken as given; only the dosing arithmetic is re-derived.

IMPORTANT: These numbers are decision support, not a prescription. The
caller must present them alongside the model's warnings.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext

from carblens.core.dosage.constants import (
    CONSERVATIVE_MARGIN_UNITS,
    CORRECTION_PRECISION,
    DEFAULT_RECOMMENDATION_NOTE,
)
from carblens.schemas.analysis import Analysis, UserProfile

_ZERO = Decimal(0)


def _dec(value: float) -> Decimal:
    # str() first: Decimal(0.1) would carry the binary representation error
    return Decimal(str(value))


def _fmt(value: Decimal | float) -> str:
    number = value if isinstance(value, Decimal) else _dec(value)
    return format(number.normalize(), "f")


def meal_units(total_carbs: float, insulin_ratio: float) -> int:
    """Carbohydrate coverage dose, always rounded up to a whole unit."""
    return math.ceil(_dec(total_carbs) / _dec(insulin_ratio))


def correction_units(
    current_glucose: float | None,
    target_glucose: float,
    sensitivity_factor: float,
) -> Decimal:
    """Correction dose to one decimal, or zero when none is needed."""
    if current_glucose is None or current_glucose <= target_glucose:
        return _ZERO
    excess = _dec(current_glucose) - _dec(target_glucose)
    dose = excess / _dec(sensitivity_factor)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the decimal place
        ctx.prec = max(ctx.prec, dose.adjusted() + 2)
        return dose.quantize(CORRECTION_PRECISION, rounding=ROUND_HALF_UP)


def recompute(
    analysis: Analysis,
    profile: UserProfile,
    current_glucose: float | None,
) -> Analysis:
    """Recompute every dosing field of ``analysis``.

    Pure and total: returns a new Analysis and never raises for a
    structurally valid input. Recomputing an already-recomputed analysis
    with the same inputs gives an identical result.

    Args:
        analysis: Validated analysis parsed from the model reply.
        profile: The patient's dosing parameters.
        current_glucose: Current reading in mg/dL, or None.

    Returns:
        A copy of ``analysis`` with meal_insulin, correction and
        recommendation replaced.
    """
    carbs = analysis.total_carbs
    ratio = profile.insulin_ratio
    target = profile.target_glucose

    # Step 1: meal dose
    meal = meal_units(carbs, ratio)
    quotient = _dec(carbs) / _dec(ratio)
    meal_insulin = analysis.meal_insulin.model_copy(
        update={
            "units": float(meal),
            "calculation": (
                f"{_fmt(carbs)}g / {_fmt(ratio)}g per unit = "
                f"{float(quotient):.2f} -> {meal} units (rounded up)"
            ),
        }
    )

    # Step 2: correction dose
    correction_dose = correction_units(
        current_glucose, target, profile.sensitivity_factor
    )
    needed = current_glucose is not None and current_glucose > target
    if current_glucose is None:
        calculation = ""
    elif needed:
        calculation = (
            f"Glucose: {_fmt(current_glucose)} mg/dL, Target: {_fmt(target)} mg/dL "
            f"-> ({_fmt(current_glucose)} - {_fmt(target)}) / "
            f"{_fmt(profile.sensitivity_factor)} = {_fmt(correction_dose)} units"
        )
    else:
        calculation = (
            f"Glucose: {_fmt(current_glucose)} mg/dL, Target: {_fmt(target)} mg/dL "
            f"-> at or below target, no correction"
        )
    correction = analysis.correction.model_copy(
        update={
            "needed": needed,
            "units": float(correction_dose),
            "calculation": calculation,
        }
    )

    # Step 3: recommendation bounds
    standard = Decimal(meal) + correction_dose
    conservative = max(_ZERO, standard - CONSERVATIVE_MARGIN_UNITS)
    recommendation = analysis.recommendation.model_copy(
        update={
            "standard": float(standard),
            "conservative": float(conservative),
            "note": analysis.recommendation.note or DEFAULT_RECOMMENDATION_NOTE,
        }
    )

    return analysis.model_copy(
        update={
            "meal_insulin": meal_insulin,
            "correction": correction,
            "recommendation": recommendation,
        }
    )
