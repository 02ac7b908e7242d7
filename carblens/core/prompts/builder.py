"""Render the vision model prompt for a meal analysis request.

The patient's parameters are embedded so the model can explain its
reasoning. They are never read back: every dosing number in the model's
reply is recomputed server-side.
"""

from decimal import Decimal

from carblens.core.prompts.rulesets import PortionReference, PromptRuleset
from carblens.schemas.analysis import AnalysisRequest

DEFAULT_LANGUAGE = "English"

# Top-level keys the model must return, in contract order
RESPONSE_KEYS: tuple[str, ...] = (
    "greeting",
    "imageQuality",
    "confidence",
    "foods",
    "totalCarbs",
    "mealInsulin",
    "correction",
    "recommendation",
    "warnings",
)

_RESPONSE_TEMPLATE = """\
{
  "greeting": "short friendly message",
  "imageQuality": "good | fair | poor, with a short reason",
  "confidence": "low | medium | high",
  "foods": [
    {"name": "food name", "amount": "estimated portion", "carbs": number, "confidence": "low | medium | high"}
  ],
  "totalCarbs": number,
  "mealInsulin": {
    "calculation": "With your ratio 1u/RATIOg -> X units",
    "units": number_rounded_up
  },
  "correction": {
    "needed": true_or_false,
    "calculation": "Glucose: X mg/dL, Target: TARGET mg/dL",
    "units": number_or_0
  },
  "recommendation": {
    "conservative": number,
    "standard": number,
    "note": "Check glucose in 60-90 min. If >180 and stable, +0.5-1u. If trending down, do not add."
  },
  "warnings": ["optional caution messages"]
}"""


def format_number(value: float) -> str:
    """Render a number exactly as given, without exponent or trailing zeros.

    15.0 -> "15", 12.3456789 -> "12.3456789", 1234567.0 -> "1234567".
    """
    return format(Decimal(str(value)).normalize(), "f")


def _format_portion(ref: PortionReference) -> str:
    return f"- {ref.food}, {ref.portion}: ~{format_number(ref.carbs_g)} g carbs"


def build_prompt(
    request: AnalysisRequest,
    ruleset: PromptRuleset,
    *,
    language: str = DEFAULT_LANGUAGE,
) -> str:
    """Build the instruction text sent alongside the meal photograph.

    Pure and deterministic: the same request, ruleset and language always
    produce identical text.

    Args:
        request: The analysis request (only the profile and glucose are used).
        ruleset: Estimation rules and portion table to embed.
        language: Language for the free-text fields of the reply.

    Returns:
        Prompt text.
    """
    profile = request.user_settings
    ratio = format_number(profile.insulin_ratio)
    target = format_number(profile.target_glucose)

    if request.current_glucose is not None:
        glucose_line = f"Current glucose: {format_number(request.current_glucose)} mg/dL"
    else:
        glucose_line = "Current glucose: not provided (no correction dose)"

    lines = [
        ruleset.role,
        "",
        f"User: {profile.display_name}",
        f"Insulin ratio: 1u per {ratio}g carbohydrate",
        f"Sensitivity factor: 1u lowers {format_number(profile.sensitivity_factor)} mg/dL",
        f"Target glucose: {target} mg/dL",
        glucose_line,
        "",
        "Respond ONLY with a single valid JSON object (no markdown, no "
        "backticks, no text before or after) in this format:",
        "",
        _RESPONSE_TEMPLATE.replace("RATIO", ratio).replace("TARGET", target),
        "",
        "IMPORTANT:",
    ]
    lines.extend(f"- {rule}" for rule in ruleset.rules)
    lines.append(f"- Write every text field in {language}.")

    if ruleset.portions:
        lines.append("")
        lines.append("PORTION REFERENCE:")
        lines.extend(_format_portion(ref) for ref in ruleset.portions)

    return "\n".join(lines)
