"""Parse raw ancestry and background records into typed records."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from charplanner.models.constants import Ability, normalize_ability, normalize_skill
from charplanner.models.feature import FeatureInstance, feature_from_record
from charplanner.models.records import (
    AbilityBonusChoice,
    AncestryRecord,
    BackgroundRecord,
)
from charplanner.parser.entries import (
    collect_choice_prompts,
    collect_granted_strings,
    dedupe,
    extract_text,
    slugify,
)


def _record_id(raw: Mapping[str, Any]) -> str:
    raw_id = raw.get("id")
    if isinstance(raw_id, str) and raw_id:
        return raw_id
    return slugify(raw.get("name")) or "unknown"


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _features(raw: Any) -> tuple[FeatureInstance, ...]:
    if raw is None:
        return ()
    entries = raw if isinstance(raw, (list, tuple)) else [raw]
    features = [feature_from_record(entry) for entry in entries]
    return tuple(f for f in features if f is not None)


def _skills(value: Any) -> tuple[str, ...]:
    return tuple(dedupe(normalize_skill(s) for s in collect_granted_strings(value)))


def parse_ability_spec(
    ability: Any,
    ability_bonuses: Any = None,
) -> tuple[dict[Ability, int], tuple[AbilityBonusChoice, ...]]:
    """Fixed ability bonuses plus 'choose' prompts from an ancestry record.

    ``ability`` may be a single mapping or a list of them, e.g.
    ``[{"str": 2, "choose": {"from": ["dex", "con"], "count": 1}}]``.
    ``ability_bonuses`` is the flat ``{"STR": 1}`` form; both are summed.
    """
    bonuses: dict[Ability, int] = {}
    choices: list[AbilityBonusChoice] = []

    def apply(entry: Mapping[str, Any]) -> None:
        for key, value in entry.items():
            if key == "choose":
                if isinstance(value, Mapping):
                    options = value.get("from")
                    abilities = dedupe(
                        normalize_ability(o) for o in options
                    ) if isinstance(options, (list, tuple)) else []
                    if abilities:
                        count = value.get("count")
                        amount = value.get("amount")
                        choices.append(AbilityBonusChoice(
                            options=tuple(abilities),
                            count=count if isinstance(count, int) else 1,
                            amount=amount if isinstance(amount, int) else 1,
                        ))
                continue
            ability_key = normalize_ability(key)
            if ability_key is not None and isinstance(value, int) and not isinstance(value, bool):
                bonuses[ability_key] = bonuses.get(ability_key, 0) + value

    entries = ability if isinstance(ability, (list, tuple)) else [ability]
    for entry in entries:
        if isinstance(entry, Mapping):
            apply(entry)
    if isinstance(ability_bonuses, Mapping):
        apply({k: v for k, v in ability_bonuses.items() if k != "choose"})
    return bonuses, tuple(choices)


def parse_speed(speed: Any) -> int | None:
    """Walking speed from ``30`` or ``{"walk": 30, ...}``."""
    if isinstance(speed, int) and not isinstance(speed, bool):
        return speed
    if isinstance(speed, Mapping) and isinstance(speed.get("walk"), int):
        return speed["walk"]
    return None


def parse_ancestry(raw: Mapping[str, Any]) -> AncestryRecord:
    bonuses, choices = parse_ability_spec(raw.get("ability"), raw.get("abilityBonuses"))
    language_specs = [raw.get("languages"), raw.get("languageProficiencies")]
    return AncestryRecord(
        id=_record_id(raw),
        name=str(raw.get("name") or _record_id(raw)),
        source=_optional_str(raw.get("source")),
        ability_bonuses=bonuses,
        ability_choices=choices,
        speed=parse_speed(raw.get("speed")),
        languages=tuple(dedupe(collect_granted_strings(language_specs))),
        skill_proficiencies=_skills(raw.get("skillProficiencies")),
        features=_features(raw.get("features")),
    )


def parse_background(raw: Mapping[str, Any]) -> BackgroundRecord:
    skills = raw.get("skillProficiencies")
    tools = raw.get("toolProficiencies")
    languages = raw.get("languages", raw.get("languageProficiencies"))
    return BackgroundRecord(
        id=_record_id(raw),
        name=str(raw.get("name") or _record_id(raw)),
        source=_optional_str(raw.get("source")),
        entries=extract_text(raw.get("entries")),
        skill_proficiencies=_skills(skills),
        skill_choices=tuple(collect_choice_prompts(skills)),
        tool_proficiencies=tuple(dedupe(collect_granted_strings(tools))),
        tool_choices=tuple(collect_choice_prompts(tools)),
        languages=tuple(dedupe(collect_granted_strings(languages))),
        language_choices=tuple(collect_choice_prompts(languages)),
        features=_features(raw.get("feature")),
    )
