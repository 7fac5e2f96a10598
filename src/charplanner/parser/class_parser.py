"""Parse raw compendium class records into ClassPartials.

The compendium describes proficiencies as free text ("Saving Throws:
Strength, Constitution", "Skills: Choose two from ..."), so parsing is a
matter of bucketing strings by prefix. Everything parsed here is handed to
merge_class_metadata(), which fills the gaps from curated metadata.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from charplanner.data.class_metadata import CLASS_METADATA
from charplanner.engine.metadata import ClassPartial, merge_class_metadata
from charplanner.models.constants import NUMBER_WORDS, Ability, normalize_ability, normalize_skill
from charplanner.models.feature import FeatureInstance, SetFeature
from charplanner.models.records import (
    ClassDefinition,
    OptionalFeatureProgression,
    SkillChoices,
    SubclassDefinition,
)
from charplanner.parser.entries import dedupe, extract_text, slugify
from charplanner.parser.optional_feature_parser import feature_types


_PROFICIENCY_KEYS = (
    "proficiency",
    "proficiencies",
    "startingProficiency",
    "startingProficiencies",
    "startingProficiencyOptions",
)

_SAVE_SPLIT = re.compile(r",|\band\b|/")
_SKILL_COUNT = re.compile(
    r"choose\s+(one|two|three|four|five|six|seven|eight|\d+)", re.IGNORECASE
)
_SKILL_OPTIONS_PREFIX = re.compile(r".*choose[^:]*from\s*", re.IGNORECASE)
_SKILL_OPTIONS_SPLIT = re.compile(r",| or | and ", re.IGNORECASE)
_ASI_FEATURE = "ability score improvement"


# ---------------------------------------------------------------------------
# Proficiencies
# ---------------------------------------------------------------------------


def collect_proficiency_strings(raw: Mapping[str, Any]) -> list[str]:
    """Every proficiency-ish string in a class record, in document order."""
    result: list[str] = []

    def push(value: Any) -> None:
        if not value:
            return
        if isinstance(value, str):
            result.append(value)
        elif isinstance(value, (list, tuple)):
            for entry in value:
                push(entry)
        elif isinstance(value, Mapping):
            for key in ("name", "entry", "text"):
                if isinstance(value.get(key), str):
                    result.append(value[key])
            for key in ("entries", "from"):
                if isinstance(value.get(key), (list, tuple)):
                    for entry in value[key]:
                        push(entry)
            # Structured form: {"armor": [...], "weapons": [...], "skills": [...]}
            for key, label in (("armor", "Armor"), ("weapons", "Weapons"), ("tools", "Tools")):
                items = value.get(key)
                for item in items if isinstance(items, (list, tuple)) else ():
                    if isinstance(item, str):
                        result.append(f"{label}: {item}")
            skills = value.get("skills")
            for item in skills if isinstance(skills, (list, tuple)) else ():
                choose = item.get("choose") if isinstance(item, Mapping) else None
                if isinstance(choose, Mapping) and isinstance(choose.get("from"), (list, tuple)):
                    options = ", ".join(str(o) for o in choose["from"])
                    result.append(f"Skills: Choose {choose.get('count', 1)} from {options}")

    for key in _PROFICIENCY_KEYS:
        push(raw.get(key))
    return result


def _strip_prefix(text: str, pattern: str) -> str:
    return re.sub(pattern, "", text, count=1, flags=re.IGNORECASE).strip()


def bucket_proficiencies(entries: Iterable[str]) -> dict[str, list]:
    """Sort proficiency strings into armor/weapons/tools/other/saves/skills."""
    buckets: dict[str, list] = {
        "armor": [],
        "weapons": [],
        "tools": [],
        "other": [],
        "saving_throws": [],
        "skill_text": [],
    }
    for entry in entries:
        if not entry:
            continue
        text = entry.strip()
        lower = text.lower()

        if lower.startswith("saving throw"):
            _, _, abilities = text.partition(":")
            for token in _SAVE_SPLIT.split(abilities):
                ability = normalize_ability(token)
                if ability is not None:
                    buckets["saving_throws"].append(ability)
        elif lower.startswith("skill"):
            cleaned = _strip_prefix(text, r"^skills?:\s*")
            if cleaned:
                buckets["skill_text"].append(cleaned)
        elif lower.startswith("armor"):
            buckets["armor"].append(_strip_prefix(text, r"^armor:\s*"))
        elif lower.startswith("weapon"):
            buckets["weapons"].append(_strip_prefix(text, r"^weapons?:\s*"))
        elif lower.startswith("tool") or "tool proficiency" in lower:
            buckets["tools"].append(_strip_prefix(text, r"^tools?:\s*"))
        else:
            buckets["other"].append(text)

    buckets["saving_throws"] = dedupe(buckets["saving_throws"])
    return buckets


def parse_skill_choices(skill_text: list[str]) -> SkillChoices | None:
    """'Choose two from Acrobatics, Athletics, and History' -> SkillChoices.

    Returns None when the count is missing or fewer options than the count
    could be recognised.
    """
    if not skill_text:
        return None
    primary = skill_text[0]
    count = 0
    match = _SKILL_COUNT.search(primary)
    if match:
        keyword = match.group(1).lower()
        count = NUMBER_WORDS.get(keyword) or (int(keyword) if keyword.isdigit() else 0)

    options_text = _SKILL_OPTIONS_PREFIX.sub("", primary, count=1)
    options = dedupe(
        normalize_skill(candidate.strip().rstrip("."))
        for candidate in _SKILL_OPTIONS_SPLIT.split(options_text)
    )
    if count > 0 and len(options) >= count:
        return SkillChoices(count=count, options=tuple(options))
    return None


# ---------------------------------------------------------------------------
# Abilities, features, subclasses
# ---------------------------------------------------------------------------


def parse_primary_ability(value: Any) -> Ability | tuple[Ability, ...] | None:
    """A single ability, or an ordered tuple when the class allows a choice.

    Accepts 'STR', ['STR', 'DEX'], and the compendium's [{'str': True}, ...].
    """
    candidates: list[Ability | None] = []
    values = value if isinstance(value, (list, tuple)) else [value]
    for entry in values:
        if isinstance(entry, Mapping):
            candidates.extend(normalize_ability(k) for k, flag in entry.items() if flag)
        else:
            candidates.append(normalize_ability(entry))
    abilities = dedupe(candidates)
    if not abilities:
        return None
    if len(abilities) == 1:
        return abilities[0]
    return tuple(abilities)


def _feature_ref(entry: Any) -> tuple[str, int, str | None] | None:
    """(name, level, description) from 'Name|Class|Source|Level' or a mapping."""
    if isinstance(entry, Mapping):
        if isinstance(entry.get("classFeature"), str):
            return _feature_ref(entry["classFeature"])
        name = entry.get("name")
        level = entry.get("level")
        if isinstance(name, str) and isinstance(level, int):
            return name, level, extract_text(entry.get("entries"))
        return None
    if isinstance(entry, str):
        parts = entry.split("|")
        if len(parts) >= 4 and parts[3].strip().isdigit():
            return parts[0].strip(), int(parts[3]), None
    return None


def parse_class_features(
    raw_features: Any,
    class_name: str,
) -> tuple[dict[int, list[FeatureInstance]], list[int]]:
    """Split class feature references into per-level features and ASI levels.

    'Ability Score Improvement' entries become ASI levels rather than
    features, since the engine raises a decision for them.
    """
    by_level: dict[int, list[FeatureInstance]] = {}
    asi_levels: list[int] = []
    if not isinstance(raw_features, (list, tuple)):
        return by_level, asi_levels
    for entry in raw_features:
        ref = _feature_ref(entry)
        if ref is None:
            continue
        name, level, description = ref
        if name.lower() == _ASI_FEATURE:
            asi_levels.append(level)
            continue
        by_level.setdefault(level, []).append(SetFeature(
            id=slugify(name),
            name=name,
            source=(f"{class_name} {level}",),
            description=description,
        ))
    return by_level, sorted(set(asi_levels))


def build_subclass_definitions(raw_subclasses: Any, parent_id: str) -> list[SubclassDefinition]:
    if not isinstance(raw_subclasses, (list, tuple)):
        return []
    subclasses: list[SubclassDefinition] = []
    for entry in raw_subclasses:
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("name") or entry.get("subclass") or "Subclass"
        slug = slugify(name)
        source = entry.get("source")
        subclasses.append(SubclassDefinition(
            id=f"{parent_id}-{slug}" if slug else f"{parent_id}-subclass",
            name=str(name),
            description=extract_text(entry.get("entries") or entry.get("description")),
            source=source if isinstance(source, str) else None,
            spellcasting_ability=normalize_ability(entry.get("spellcastingAbility")),
        ))
    return subclasses


# ---------------------------------------------------------------------------
# Optional feature progression
# ---------------------------------------------------------------------------


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and value > 0:
        return value
    return None


def _cumulative_steps(known_by_level: Iterable[tuple[int, Any]]) -> tuple[tuple[int, int], ...]:
    steps: list[tuple[int, int]] = []
    known = 0
    for level, value in sorted(known_by_level, key=lambda pair: pair[0]):
        total = _positive_int(value)
        if total is not None and total > known:
            steps.append((level, total - known))
            known = total
    return tuple(steps)


def _progression_steps(value: Any) -> tuple[tuple[int, int], ...]:
    """(level, count) steps from a progression value.

    Accepts a list of ``{level, count|known}`` mappings (count per step, in
    record order), a mapping of level -> total known, or a list of total
    known per level starting at level 1.
    """
    if isinstance(value, Mapping):
        levels = [(_positive_int(k), v) for k, v in value.items()]
        return _cumulative_steps((lv, v) for lv, v in levels if lv is not None)
    if not isinstance(value, (list, tuple)):
        return ()
    if all(not isinstance(step, Mapping) for step in value):
        return _cumulative_steps(enumerate(value, start=1))

    steps: list[tuple[int, int]] = []
    for step in value:
        if not isinstance(step, Mapping):
            continue
        level = _positive_int(step.get("level"))
        count = _positive_int(step.get("count")) or _positive_int(step.get("known"))
        if level is not None and count is not None:
            steps.append((level, count))
    return tuple(steps)


def parse_optional_feature_progression(value: Any) -> tuple[OptionalFeatureProgression, ...]:
    """Parse a class's optional feature progression entries.

    Entries without a feature type or without any usable step are dropped.
    """
    if not isinstance(value, (list, tuple)):
        return ()
    progressions: list[OptionalFeatureProgression] = []
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        types = feature_types(entry)
        steps = _progression_steps(entry.get("progression"))
        if not types or not steps:
            continue
        name = entry.get("name") if isinstance(entry.get("name"), str) else None
        progression_id = slugify(entry.get("id")) or slugify(name) or "optional"
        progressions.append(OptionalFeatureProgression(
            id=progression_id,
            name=name or progression_id,
            feature_types=types,
            steps=steps,
        ))
    return tuple(progressions)


def _hit_die(raw: Mapping[str, Any]) -> int | None:
    hd = raw.get("hd")
    if isinstance(hd, Mapping) and isinstance(hd.get("faces"), int):
        return hd["faces"]
    if isinstance(raw.get("hitDie"), int):
        return raw["hitDie"]
    return None


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def normalize_class_entry(raw: Mapping[str, Any], raw_subclasses: Any = None) -> tuple[str, ClassPartial]:
    """Parse one base-class record (plus its subclass records) into a partial."""
    class_id = slugify(raw.get("name")) or slugify(raw.get("id")) or "class"
    name = raw.get("name") if isinstance(raw.get("name"), str) else None
    buckets = bucket_proficiencies(collect_proficiency_strings(raw))
    features, asi_levels = parse_class_features(raw.get("classFeatures"), name or class_id)
    subclasses = build_subclass_definitions(raw_subclasses, class_id)

    subclass_title = raw.get("subclassTitle")
    subclass_level = subclass_title.get("level") if isinstance(subclass_title, Mapping) else None
    if not isinstance(subclass_level, int):
        subclass_level = None
    if subclass_level is None and subclasses and class_id not in CLASS_METADATA:
        subclass_level = 3

    source = raw.get("source")
    return class_id, ClassPartial(
        name=name,
        primary_ability=parse_primary_ability(raw.get("primaryAbility")),
        hit_die=_hit_die(raw),
        saving_throws=tuple(buckets["saving_throws"]) or None,
        armor_proficiencies=tuple(buckets["armor"]) or None,
        weapon_proficiencies=tuple(buckets["weapons"]) or None,
        tool_proficiencies=tuple(buckets["tools"]) or None,
        other_proficiencies=tuple(buckets["other"]) or None,
        skill_choices=parse_skill_choices(buckets["skill_text"]),
        features_by_level={lv: tuple(fs) for lv, fs in features.items()} or None,
        asi_levels=tuple(asi_levels) or None,
        subclass_level=subclass_level,
        subclasses=tuple(subclasses) or None,
        optional_feature_progression=parse_optional_feature_progression(
            raw.get("optionalFeatureProgression", raw.get("optionalfeatureProgression"))
        ) or None,
        spellcasting_ability=normalize_ability(raw.get("spellcastingAbility")),
        description=extract_text(raw.get("description")) or extract_text(raw.get("entries")),
        source=source if isinstance(source, str) else None,
    )


def build_class_catalogue(raw_classes: Any) -> list[ClassDefinition]:
    """Resolve a compendium class list into ClassDefinitions, sorted by name.

    Subclass records (``isSubclass``) are attached to their parent by
    slugified ``parentClass``/``className``/``class``. When the input has no
    base classes the curated catalogue is returned.
    """
    if not isinstance(raw_classes, (list, tuple)):
        raw_classes = []
    entries = [entry for entry in raw_classes if isinstance(entry, Mapping)]
    base_classes = [entry for entry in entries if not entry.get("isSubclass")]

    if not base_classes:
        catalogue = [merge_class_metadata(class_id) for class_id in CLASS_METADATA]
        return sorted(catalogue, key=lambda cls: cls.name.lower())

    subclasses_by_parent: dict[str, list[Mapping[str, Any]]] = {}
    for entry in entries:
        if not entry.get("isSubclass"):
            continue
        parent = entry.get("parentClass") or entry.get("className") or entry.get("class")
        parent_id = slugify(parent)
        if parent_id:
            subclasses_by_parent.setdefault(parent_id, []).append(entry)

    catalogue: list[ClassDefinition] = []
    for entry in base_classes:
        parent_id = slugify(entry.get("name"))
        class_id, partial = normalize_class_entry(entry, subclasses_by_parent.get(parent_id, []))
        catalogue.append(merge_class_metadata(class_id, partial))
    return sorted(catalogue, key=lambda cls: cls.name.lower())
