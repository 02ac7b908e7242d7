"""Prompt rulesets.

Each ruleset is pure data: the role the model is asked to play, an ordered
list of estimation rules, and a portion-reference table. Rulesets differ in
how they trade carbohydrate under-estimation against over-estimation. The
active ruleset is chosen by configuration (``PROMPT_VERSION``).
"""

from dataclasses import dataclass
from enum import StrEnum, auto


class PromptVersion(StrEnum):
    """Available prompt rulesets."""

    minimal = auto()
    conservative = auto()
    balanced = auto()


@dataclass(frozen=True, slots=True)
class PortionReference:
    """A reference portion and its typical carbohydrate content."""

    food: str
    portion: str
    carbs_g: float


@dataclass(frozen=True, slots=True)
class PromptRuleset:
    version: PromptVersion
    role: str
    rules: tuple[str, ...]
    portions: tuple[PortionReference, ...] = ()


_EXPERT_ROLE = (
    "Analyze this meal photograph as an endocrinologist experienced in "
    "type 1 diabetes and carbohydrate counting."
)

# Shared by the conservative and balanced rulesets
STANDARD_PORTIONS: tuple[PortionReference, ...] = (
    PortionReference("Bread", "1 slice (30 g)", 15),
    PortionReference("Cooked rice", "1 cup (160 g)", 45),
    PortionReference("Cooked pasta", "1 cup (140 g)", 43),
    PortionReference("Potato, boiled", "1 medium (150 g)", 30),
    PortionReference("French fries", "1 medium serving (115 g)", 48),
    PortionReference("Corn tortilla", "1 tortilla (25 g)", 11),
    PortionReference("Flour tortilla", "1 tortilla, 20 cm (45 g)", 22),
    PortionReference("Cooked beans or lentils", "1/2 cup (90 g)", 20),
    PortionReference("Apple", "1 medium (180 g)", 25),
    PortionReference("Banana", "1 medium (120 g)", 27),
    PortionReference("Orange", "1 medium (130 g)", 15),
    PortionReference("Milk", "1 cup (240 ml)", 12),
    PortionReference("Plain yogurt", "1 cup (245 g)", 17),
    PortionReference("Pizza", "1 slice, 1/8 of 35 cm pie", 35),
    PortionReference("Soft drink", "1 can (355 ml)", 39),
    PortionReference("Fruit juice", "1 glass (240 ml)", 26),
    PortionReference("Meat, fish, eggs, cheese", "any portion", 0),
    PortionReference("Leafy salad, no dressing", "1 cup", 2),
)

RULESETS: dict[PromptVersion, PromptRuleset] = {
    PromptVersion.minimal: PromptRuleset(
        version=PromptVersion.minimal,
        role=_EXPERT_ROLE,
        rules=(
            "Identify ALL foods visible in the image.",
            "Estimate carbohydrates realistically and precisely.",
            "ALWAYS round the meal insulin UP to the next whole unit.",
            "If current glucose is above target, calculate the correction.",
            "Be precise and professional, like an experienced endocrinologist.",
        ),
    ),
    PromptVersion.conservative: PromptRuleset(
        version=PromptVersion.conservative,
        role=_EXPERT_ROLE + " Safety comes first.",
        rules=(
            "Identify ALL foods visible in the image, including drinks and sauces.",
            "When a portion is ambiguous, choose the SMALLER plausible size: "
            "over-estimating carbohydrates leads to insulin over-dosing.",
            "Never guess hidden ingredients; only count what is visible.",
            "Use the portion reference table below as your baseline.",
            "Mark each food's confidence as low, medium or high.",
            "If the image is blurry, dark or partially cropped, say so in "
            "imageQuality and add a warning.",
            "If any food's confidence is low, add a warning recommending "
            "the user verify the portion.",
            "ALWAYS round the meal insulin UP to the next whole unit.",
            "If current glucose is above target, calculate the correction.",
        ),
        portions=STANDARD_PORTIONS,
    ),
    PromptVersion.balanced: PromptRuleset(
        version=PromptVersion.balanced,
        role=_EXPERT_ROLE,
        rules=(
            "Identify ALL foods visible in the image, including drinks and sauces.",
            "Estimate each portion from visual cues (plate size, utensils, "
            "hands) and pick the MOST LIKELY size, neither the smallest nor "
            "the largest plausible one.",
            "Use the portion reference table below as your baseline and scale "
            "it to the estimated portion.",
            "Count added sugars, breading and starchy sauces.",
            "Mark each food's confidence as low, medium or high.",
            "If the image is blurry, dark or partially cropped, say so in "
            "imageQuality and add a warning.",
            "If any food's confidence is low, add a warning recommending "
            "the user verify the portion.",
            "ALWAYS round the meal insulin UP to the next whole unit.",
            "If current glucose is above target, calculate the correction.",
        ),
        portions=STANDARD_PORTIONS,
    ),
}


def get_ruleset(version: PromptVersion | str) -> PromptRuleset:
    """Resolve a ruleset by version name.

    Raises:
        ValueError: If the version is unknown.
    """
    return RULESETS[PromptVersion(version)]
