"""Ability score math: modifiers, proficiency bonus, display formatting.

Pure functions with no bounds enforcement; score validation happens at the
state boundary (see BuildState.with_base_ability).
"""

import math


def ability_modifier(score: int) -> int:
    """Modifier = floor((score - 10) / 2). Works for any integer score."""
    return math.floor((score - 10) / 2)


def proficiency_bonus(level: int) -> int:
    """Proficiency bonus by character level; 0 below level 1."""
    if level >= 17:
        return 6
    if level >= 13:
        return 5
    if level >= 9:
        return 4
    if level >= 5:
        return 3
    if level >= 1:
        return 2
    return 0


def format_modifier(mod: int) -> str:
    """Render a sign-prefixed modifier. Zero renders as '+0'."""
    return f"+{mod}" if mod >= 0 else f"{mod}"
