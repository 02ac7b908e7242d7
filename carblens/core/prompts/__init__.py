"""Versioned prompt contract for meal photo analysis."""

from carblens.core.prompts.builder import RESPONSE_KEYS, build_prompt
from carblens.core.prompts.rulesets import (
    RULESETS,
    PortionReference,
    PromptRuleset,
    PromptVersion,
    get_ruleset,
)

__all__ = [
    "RESPONSE_KEYS",
    "RULESETS",
    "PortionReference",
    "PromptRuleset",
    "PromptVersion",
    "build_prompt",
    "get_ruleset",
]
