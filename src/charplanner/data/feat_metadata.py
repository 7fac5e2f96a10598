"""Curated feat metadata, keyed by slugified feat name.

When present, an entry is the source of truth for a feat's description,
ability increases, and granted features.
"""

from dataclasses import dataclass, field

from charplanner.models.constants import ABILITY_LIST, Ability
from charplanner.models.feature import FeatureInstance, SetFeature


@dataclass(frozen=True, slots=True)
class FeatMetadata:
    description: str
    ability_increases: dict[Ability, int] = field(default_factory=dict)
    features: tuple[FeatureInstance, ...] = ()


FEAT_METADATA: dict[str, FeatMetadata] = {
    "alert": FeatMetadata(
        description=(
            "Always on the lookout for danger, you gain a +5 bonus to initiative and "
            "cannot be surprised while conscious."
        ),
        features=(
            SetFeature(
                id="alert",
                name="Alert",
                source=("Feat: Alert",),
                description="You gain a +5 bonus to initiative and cannot be surprised while conscious.",
            ),
        ),
    ),
    "athlete": FeatMetadata(
        description=(
            "Your physical training enhances your strength and agility. Increase your "
            "Strength or Dexterity by 1, up to a maximum of 20."
        ),
        ability_increases={Ability.STR: 1, Ability.DEX: 1},
        features=(
            SetFeature(
                id="athlete",
                name="Athlete",
                source=("Feat: Athlete",),
                description="You gain climbing benefits and improved standing up from prone.",
            ),
        ),
    ),
    "resilient": FeatMetadata(
        description=(
            "Choose one ability score. You gain proficiency in saving throws using the "
            "chosen ability, and increase the ability score by 1."
        ),
        ability_increases={ability: 1 for ability in ABILITY_LIST},
        features=(
            SetFeature(
                id="resilient",
                name="Resilient",
                source=("Feat: Resilient",),
                description=(
                    "Gain proficiency in one saving throw of your choice and increase the "
                    "corresponding ability score by 1."
                ),
            ),
        ),
    ),
}
