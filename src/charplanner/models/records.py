"""Normalised compendium records consumed by the build engine.

Raw compendium data arrives in loosely-typed mappings; the parsers in
``charplanner.parser`` turn it into these shapes once, so the engine never
has to inspect raw entries.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from charplanner.models.constants import Ability, normalize_ability
from charplanner.models.feature import FeatureInstance, feature_from_record, feature_to_dict


@dataclass(frozen=True, slots=True)
class ChoicePrompt:
    """'Choose *count* from *options*' as found in proficiency specs."""
    options: tuple[str, ...]
    count: int = 1


@dataclass(frozen=True, slots=True)
class AbilityBonusChoice:
    """Ancestry 'choose' ability bonus: +amount to *count* of *options*."""
    options: tuple[Ability, ...]
    count: int = 1
    amount: int = 1


@dataclass(frozen=True, slots=True)
class AncestryRecord:
    """An ancestry (race) with its fixed and choosable grants."""
    id: str
    name: str
    source: str | None = None
    ability_bonuses: dict[Ability, int] = field(default_factory=dict)
    ability_choices: tuple[AbilityBonusChoice, ...] = ()
    speed: int | None = None
    languages: tuple[str, ...] = ()
    skill_proficiencies: tuple[str, ...] = ()
    features: tuple[FeatureInstance, ...] = ()


@dataclass(frozen=True, slots=True)
class BackgroundRecord:
    """A background with fixed proficiencies, choice prompts, and feature(s)."""
    id: str
    name: str
    source: str | None = None
    entries: str | None = None
    skill_proficiencies: tuple[str, ...] = ()
    skill_choices: tuple[ChoicePrompt, ...] = ()
    tool_proficiencies: tuple[str, ...] = ()
    tool_choices: tuple[ChoicePrompt, ...] = ()
    languages: tuple[str, ...] = ()
    language_choices: tuple[ChoicePrompt, ...] = ()
    features: tuple[FeatureInstance, ...] = ()


@dataclass(frozen=True, slots=True)
class SkillChoices:
    count: int = 0
    options: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SubclassDefinition:
    id: str
    name: str
    description: str | None = None
    source: str | None = None
    spellcasting_ability: Ability | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description is not None:
            out["description"] = self.description
        if self.source is not None:
            out["source"] = self.source
        if self.spellcasting_ability is not None:
            out["spellcastingAbility"] = self.spellcasting_ability.value
        return out


@dataclass(frozen=True, slots=True)
class OptionalFeatureProgression:
    """Levels at which a class picks optional features of some type.

    ``steps`` holds (level, count) pairs in record order; the position of a
    step is part of the decision id it raises.
    """
    id: str
    name: str
    feature_types: tuple[str, ...]
    steps: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True, slots=True)
class OptionalFeatureRecord:
    """One pickable option, e.g. a fighting style or an invocation."""
    id: str
    name: str
    feature_types: tuple[str, ...] = ()
    description: str | None = None
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name, "featureTypes": list(self.feature_types)}
        if self.description is not None:
            out["description"] = self.description
        if self.source is not None:
            out["source"] = self.source
        return out


@dataclass(frozen=True, slots=True)
class ClassDefinition:
    """A fully resolved class, treated as immutable input to leveling.

    primary_ability is either one Ability or an ordered tuple of admissible
    abilities when the class allows a choice (e.g. Fighter: STR or DEX).
    """
    id: str
    name: str
    primary_ability: Ability | tuple[Ability, ...] = Ability.STR
    hit_die: int = 8
    saving_throws: tuple[Ability, ...] = ()
    armor_proficiencies: tuple[str, ...] = ()
    weapon_proficiencies: tuple[str, ...] = ()
    tool_proficiencies: tuple[str, ...] = ()
    other_proficiencies: tuple[str, ...] = ()
    skill_choices: SkillChoices = field(default_factory=SkillChoices)
    features_by_level: dict[int, tuple[FeatureInstance, ...]] = field(default_factory=dict)
    asi_levels: tuple[int, ...] = ()
    subclass_level: int | None = None
    subclasses: tuple[SubclassDefinition, ...] = ()
    optional_feature_progression: tuple[OptionalFeatureProgression, ...] = ()
    spellcasting_ability: Ability | None = None
    description: str | None = None
    source: str | None = None

    @property
    def primary_abilities(self) -> tuple[Ability, ...]:
        """Primary ability candidates as a tuple, whichever form is stored."""
        if isinstance(self.primary_ability, Ability):
            return (self.primary_ability,)
        return tuple(self.primary_ability)


@dataclass(frozen=True, slots=True)
class FeatDefinition:
    id: str
    name: str
    description: str | None = None
    ability_increases: dict[Ability, int] = field(default_factory=dict)
    features: tuple[FeatureInstance, ...] = ()
    prerequisites: tuple[str, ...] = ()
    source: str | None = None


def feat_to_dict(feat: FeatDefinition) -> dict[str, Any]:
    out: dict[str, Any] = {"id": feat.id, "name": feat.name}
    if feat.description is not None:
        out["description"] = feat.description
    if feat.ability_increases:
        out["abilityIncreases"] = {a.value: v for a, v in feat.ability_increases.items()}
    if feat.features:
        out["features"] = [feature_to_dict(f) for f in feat.features]
    if feat.prerequisites:
        out["prerequisites"] = list(feat.prerequisites)
    if feat.source is not None:
        out["source"] = feat.source
    return out


def feat_from_dict(raw: Mapping[str, Any]) -> FeatDefinition:
    """Inverse of feat_to_dict. Ignores unknown ability keys and bad features."""
    increases: dict[Ability, int] = {}
    raw_increases = raw.get("abilityIncreases")
    if isinstance(raw_increases, Mapping):
        for key, amount in raw_increases.items():
            ability = normalize_ability(key)
            if ability is not None and isinstance(amount, int):
                increases[ability] = amount

    features: list[FeatureInstance] = []
    raw_features = raw.get("features")
    if isinstance(raw_features, (list, tuple)):
        for entry in raw_features:
            feature = feature_from_record(entry)
            if feature is not None:
                features.append(feature)

    prerequisites = raw.get("prerequisites")
    description = raw.get("description")
    source = raw.get("source")
    return FeatDefinition(
        id=str(raw.get("id", "")),
        name=str(raw.get("name", "")),
        description=description if isinstance(description, str) else None,
        ability_increases=increases,
        features=tuple(features),
        prerequisites=tuple(p for p in prerequisites if isinstance(p, str))
        if isinstance(prerequisites, (list, tuple)) else (),
        source=source if isinstance(source, str) else None,
    )
