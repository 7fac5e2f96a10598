"""Rule limits used by BuildState transitions and build_character().

Defaults follow the fifth-edition core rules; pass a modified copy for
homebrew level caps or score limits.
"""

from dataclasses import dataclass


@dataclass(slots=True)
class BuildConfig:
    """Limits and defaults that compendium records do not carry."""

    max_level: int = 20
    min_score: int = 1              # Lowest base score a transition accepts
    max_score: int = 30
    score_ceiling: int = 20         # ASIs may not push a score past this
    asi_total: int = 2              # Points per Ability Score Improvement
    default_score: int = 10
    boss_array: tuple[int, ...] = (17, 15, 13, 13, 11, 9)
    default_speed: int = 30
