"""Insulin dose recomputation.

Every dose returned to a client is computed here from the patient's
parameters and the model's carbohydrate estimate. The model's own dosing
numbers are discarded.
"""

from carblens.core.dosage.constants import (
    CONSERVATIVE_MARGIN_UNITS,
    CORRECTION_PRECISION,
    DEFAULT_RECOMMENDATION_NOTE,
)
from carblens.core.dosage.recalculator import correction_units, meal_units, recompute

__all__ = [
    "CONSERVATIVE_MARGIN_UNITS",
    "CORRECTION_PRECISION",
    "DEFAULT_RECOMMENDATION_NOTE",
    "correction_units",
    "meal_units",
    "recompute",
]
