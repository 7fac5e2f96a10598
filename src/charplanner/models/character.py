"""Character data model.

Basics is the free-text identity a player types in; ResolvedCharacter is
the engine's output value, recomputed on every state change and never
persisted. ``to_dict`` renders it as plain JSON for export and print.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from charplanner.models.constants import ABILITY_LIST, Ability
from charplanner.models.decisions import Decision
from charplanner.models.feature import FeatureInstance, feature_to_dict


@dataclass(frozen=True, slots=True)
class Basics:
    """Free-text character identity. Not interpreted by the rules engine."""

    name: str = ""
    descriptor: str = ""
    alignment: str = ""
    occupation: str = ""
    origin: str = ""
    affiliations: str = ""
    campaign_notes: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "descriptor": self.descriptor,
            "alignment": self.alignment,
            "occupation": self.occupation,
            "origin": self.origin,
            "affiliations": self.affiliations,
            "campaignNotes": self.campaign_notes,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Basics:
        if not isinstance(raw, dict):
            return cls()

        def text(key: str) -> str:
            value = raw.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            name=text("name"),
            descriptor=text("descriptor"),
            alignment=text("alignment"),
            occupation=text("occupation"),
            origin=text("origin"),
            affiliations=text("affiliations"),
            campaign_notes=text("campaignNotes"),
        )


@dataclass(frozen=True, slots=True)
class LevelSnapshot:
    """What one class level contributed. Immutable once emitted."""

    level: int
    class_id: str
    hp_gained: int
    features_gained: tuple[FeatureInstance, ...] = ()
    decisions_raised: tuple[Decision, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "classId": self.class_id,
            "hpGained": self.hp_gained,
            "featuresGained": [feature_to_dict(f) for f in self.features_gained],
            "decisionsRaised": [d.to_dict() for d in self.decisions_raised],
        }


@dataclass(frozen=True, slots=True)
class ClassLevel:
    class_id: str
    levels: int
    subclass_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"classId": self.class_id, "levels": self.levels}
        if self.subclass_id is not None:
            out["subclassId"] = self.subclass_id
        return out


def _ability_map(values: dict[Ability, int]) -> dict[str, int]:
    return {ability.value: values.get(ability, 0) for ability in ABILITY_LIST}


@dataclass(frozen=True, slots=True)
class AbilityBlock:
    """Per-ability breakdown. total = base + racial + asi, never clamped."""

    base: dict[Ability, int]
    racial: dict[Ability, int]
    asi: dict[Ability, int]
    total: dict[Ability, int]

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {
            "base": _ability_map(self.base),
            "racial": _ability_map(self.racial),
            "asi": _ability_map(self.asi),
            "total": _ability_map(self.total),
        }


@dataclass(frozen=True, slots=True)
class ResolvedCharacter:
    """Fully resolved character projection produced by build_character()."""

    id: str
    name: str
    descriptor: str
    overview: dict[str, str | None]
    abilities: AbilityBlock
    level: int
    classes: tuple[ClassLevel, ...]
    proficiency_bonus: int
    hp: int
    armor_class: int
    speed: int
    passive_perception: int
    saving_throws: tuple[Ability, ...] = ()
    skills: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    armor_proficiencies: tuple[str, ...] = ()
    weapon_proficiencies: tuple[str, ...] = ()
    tool_proficiencies: tuple[str, ...] = ()
    other_proficiencies: tuple[str, ...] = ()
    features: tuple[FeatureInstance, ...] = ()
    pending_decisions: tuple[Decision, ...] = ()
    history: tuple[LevelSnapshot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable rendering, stable for identical inputs."""
        return {
            "id": self.id,
            "name": self.name,
            "descriptor": self.descriptor,
            "overview": dict(self.overview),
            "abilities": self.abilities.to_dict(),
            "level": self.level,
            "classes": [c.to_dict() for c in self.classes],
            "profBonus": self.proficiency_bonus,
            "hp": self.hp,
            "ac": self.armor_class,
            "speed": self.speed,
            "passivePerception": self.passive_perception,
            "saves": {"proficient": [a.value for a in self.saving_throws]},
            "skills": {"proficient": list(self.skills)},
            "languages": list(self.languages),
            "proficiencies": {
                "armor": list(self.armor_proficiencies),
                "weapons": list(self.weapon_proficiencies),
                "tools": list(self.tool_proficiencies),
                "other": list(self.other_proficiencies),
            },
            "features": [feature_to_dict(f) for f in self.features],
            "decisions": [d.to_dict() for d in self.pending_decisions],
            "history": [snapshot.to_dict() for snapshot in self.history],
        }
