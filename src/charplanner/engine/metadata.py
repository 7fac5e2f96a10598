"""Two-source merge of compendium class data with curated class metadata.

Per-field precedence (compendium partial vs. curated CLASS_METADATA):

  - name, primary ability, hit die, subclass level, spellcasting ability,
    description, source: partial wins when not None.
  - saving throws, armor/weapon/tool/other proficiencies, ASI levels:
    partial wins when non-empty.
  - subclasses: the partial's subclasses, followed by curated subclasses
    whose id the partial does not already list.
  - optional feature progression: partial wins when non-empty.
  - skill choices: partial wins when it lists at least one option.
  - features_by_level: deep merge; for each level curated features come
    first, then the partial's features for the same level.

Anything missing from both sources falls back to ClassDefinition defaults
(hit die 8, empty lists).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from charplanner.data.class_metadata import CLASS_METADATA
from charplanner.models.constants import Ability
from charplanner.models.feature import FeatureInstance
from charplanner.models.records import (
    ClassDefinition,
    OptionalFeatureProgression,
    SkillChoices,
    SubclassDefinition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClassPartial:
    """Whatever a compendium record told us about a class. None = absent."""

    name: str | None = None
    primary_ability: Ability | tuple[Ability, ...] | None = None
    hit_die: int | None = None
    saving_throws: tuple[Ability, ...] | None = None
    armor_proficiencies: tuple[str, ...] | None = None
    weapon_proficiencies: tuple[str, ...] | None = None
    tool_proficiencies: tuple[str, ...] | None = None
    other_proficiencies: tuple[str, ...] | None = None
    skill_choices: SkillChoices | None = None
    features_by_level: Mapping[int, Sequence[FeatureInstance]] | None = None
    asi_levels: tuple[int, ...] | None = None
    subclass_level: int | None = None
    subclasses: tuple[SubclassDefinition, ...] | None = None
    optional_feature_progression: tuple[OptionalFeatureProgression, ...] | None = None
    spellcasting_ability: Ability | None = None
    description: str | None = None
    source: str | None = None


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _non_empty(partial_value, curated_value):
    if partial_value:
        return tuple(partial_value)
    return tuple(curated_value or ())


def merge_features_by_level(
    curated: Mapping[int, Sequence[FeatureInstance]],
    partial: Mapping[int, Sequence[FeatureInstance]] | None,
) -> dict[int, tuple[FeatureInstance, ...]]:
    """Concatenate per-level feature lists, curated first."""
    merged: dict[int, tuple[FeatureInstance, ...]] = {}
    partial = partial or {}
    for level in sorted(set(curated) | set(partial)):
        merged[level] = tuple(curated.get(level, ())) + tuple(partial.get(level, ()))
    return merged


def merge_subclasses(
    curated: Sequence[SubclassDefinition],
    partial: Sequence[SubclassDefinition] | None,
) -> tuple[SubclassDefinition, ...]:
    merged = list(partial or ())
    known = {subclass.id for subclass in merged}
    merged.extend(subclass for subclass in curated if subclass.id not in known)
    return tuple(merged)


def merge_class_metadata(class_id: str, partial: ClassPartial | None = None) -> ClassDefinition:
    """Resolve a class definition from a compendium partial and curated data."""
    partial = partial or ClassPartial()
    curated = CLASS_METADATA.get(class_id)
    if curated is None:
        logger.debug("No curated metadata for class %r; using compendium data only", class_id)
        curated = ClassDefinition(id=class_id, name=class_id)

    skill_choices = curated.skill_choices
    if partial.skill_choices is not None and partial.skill_choices.options:
        skill_choices = partial.skill_choices

    return ClassDefinition(
        id=class_id,
        name=_first(partial.name, curated.name, class_id),
        primary_ability=_first(partial.primary_ability, curated.primary_ability),
        hit_die=_first(partial.hit_die, curated.hit_die),
        saving_throws=_non_empty(partial.saving_throws, curated.saving_throws),
        armor_proficiencies=_non_empty(partial.armor_proficiencies, curated.armor_proficiencies),
        weapon_proficiencies=_non_empty(partial.weapon_proficiencies, curated.weapon_proficiencies),
        tool_proficiencies=_non_empty(partial.tool_proficiencies, curated.tool_proficiencies),
        other_proficiencies=_non_empty(partial.other_proficiencies, curated.other_proficiencies),
        skill_choices=skill_choices,
        features_by_level=merge_features_by_level(curated.features_by_level, partial.features_by_level),
        asi_levels=tuple(sorted(_non_empty(partial.asi_levels, curated.asi_levels))),
        subclass_level=_first(partial.subclass_level, curated.subclass_level),
        subclasses=merge_subclasses(curated.subclasses, partial.subclasses),
        optional_feature_progression=_non_empty(
            partial.optional_feature_progression, curated.optional_feature_progression,
        ),
        spellcasting_ability=_first(partial.spellcasting_ability, curated.spellcasting_ability),
        description=_first(partial.description, curated.description),
        source=_first(partial.source, curated.source),
    )
