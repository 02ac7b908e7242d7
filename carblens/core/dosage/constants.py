"""Dosage recomputation constants.

Fixed clinical policy values. None of these are derived from the image or
from the model's reply.
"""

from decimal import Decimal
from typing import Final

# Conservative recommendation: the standard dose minus this margin (units),
# floored at zero.
CONSERVATIVE_MARGIN_UNITS: Final[Decimal] = Decimal("0.5")

# Correction doses are reported to one decimal place (0.1 unit).
CORRECTION_PRECISION: Final[Decimal] = Decimal("0.1")

# Used when the model does not supply its own follow-up note.
DEFAULT_RECOMMENDATION_NOTE: Final[str] = (
    "Check glucose again in 60-90 min. If above 180 mg/dL and stable, "
    "consider +0.5-1u. If trending down, do not add insulin."
)
