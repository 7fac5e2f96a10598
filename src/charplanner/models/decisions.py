"""Decision model: raised decision descriptors and resolved decision values.

A *raised* decision is what the level resolver asks the player for; a
*resolved* decision is the player's answer, stored in
``BuildState.resolved_decisions`` under the decision's id. Ids are derived
from (class id, level, kind) so rebuilding from scratch re-raises the same
id and finds the answer already recorded.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from charplanner.models.constants import Ability, normalize_ability
from charplanner.models.records import FeatDefinition, feat_from_dict, feat_to_dict


DecisionKind = Literal[
    "choose-skill",
    "choose-subclass",
    "asi",
    "choose-ability",
    "choose-language",
    "choose-tool",
    "choose-optional-feature",
]


# ---------------------------------------------------------------------------
# Decision ids
# ---------------------------------------------------------------------------


def skill_decision_id(class_id: str, level: int) -> str:
    return f"{class_id}-level-{level}-skills"


def subclass_decision_id(class_id: str) -> str:
    return f"{class_id}-subclass-choice"


def asi_decision_id(class_id: str, level: int) -> str:
    return f"{class_id}-level-{level}-asi"


def ancestry_ability_decision_id(ancestry_id: str, index: int) -> str:
    return f"ancestry-{ancestry_id}-ability-{index}"


def background_decision_id(kind: str, background_id: str, index: int) -> str:
    """kind is one of 'skill', 'language', 'tool'."""
    return f"background-{kind}-{background_id}-{index}"


def optional_feature_decision_id(class_id: str, progression_id: str, index: int, level: int) -> str:
    """index is the position of the step within its progression."""
    return f"{class_id}-optional-{progression_id}-{index}-level-{level}"


# ---------------------------------------------------------------------------
# Raised decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Decision:
    """A choice the player must make, as raised during resolution."""

    id: str
    kind: DecisionKind
    options: tuple[Any, ...] = ()
    min: int = 1
    max: int = 1
    label: str | None = None
    level: int | None = None

    def display_label(self) -> str:
        if self.label:
            return self.label
        return self.id.replace("-", " ").replace("_", " ")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.kind,
            "options": [_option_value(o) for o in self.options],
            "min": self.min,
            "max": self.max,
        }
        if self.label is not None:
            out["label"] = self.label
        if self.level is not None:
            out["level"] = self.level
        return out


def _option_value(option: Any) -> Any:
    if isinstance(option, Ability):
        return option.value
    to_dict = getattr(option, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return option


# ---------------------------------------------------------------------------
# Resolved decisions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SkillChoice:
    """Skills picked for a choose-skill decision (class or background)."""
    choices: tuple[str, ...]

    kind: ClassVar[DecisionKind] = "choose-skill"


@dataclass(frozen=True, slots=True)
class SubclassChoice:
    choice: str

    kind: ClassVar[DecisionKind] = "choose-subclass"


@dataclass(frozen=True, slots=True)
class AbilityScoreImprovement:
    """ASI taken as ability increases: +1 per listed ability.

    Listing the same ability twice gives it +2.
    """
    abilities: tuple[Ability, ...]

    kind: ClassVar[DecisionKind] = "asi"
    mode: ClassVar[str] = "ability"

    def increments(self) -> dict[Ability, int]:
        bumps: dict[Ability, int] = {}
        for ability in self.abilities:
            bumps[ability] = bumps.get(ability, 0) + 1
        return bumps


@dataclass(frozen=True, slots=True)
class FeatSelection:
    """ASI taken as a feat, optionally with the ability its bonus applies to."""
    feat_id: str
    feat: FeatDefinition | None = None
    ability_selection: Ability | None = None

    kind: ClassVar[DecisionKind] = "asi"
    mode: ClassVar[str] = "feat"


@dataclass(frozen=True, slots=True)
class AbilityChoice:
    """Abilities picked for an ancestry 'choose' bonus."""
    choices: tuple[Ability, ...]

    kind: ClassVar[DecisionKind] = "choose-ability"


@dataclass(frozen=True, slots=True)
class LanguageChoice:
    choices: tuple[str, ...]

    kind: ClassVar[DecisionKind] = "choose-language"


@dataclass(frozen=True, slots=True)
class ToolChoice:
    choices: tuple[str, ...]

    kind: ClassVar[DecisionKind] = "choose-tool"


@dataclass(frozen=True, slots=True)
class OptionalFeatureChoice:
    """Optional features (e.g. a fighting style) picked for one progression step."""
    feature_type: str
    choices: tuple[str, ...]

    kind: ClassVar[DecisionKind] = "choose-optional-feature"


ResolvedDecision = (
    SkillChoice
    | SubclassChoice
    | AbilityScoreImprovement
    | FeatSelection
    | AbilityChoice
    | LanguageChoice
    | ToolChoice
    | OptionalFeatureChoice
)


# ---------------------------------------------------------------------------
# Persistence shape
# ---------------------------------------------------------------------------


def _strings(values: Any) -> tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(v for v in values if isinstance(v, str))


def _abilities(values: Any) -> tuple[Ability, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    result: list[Ability] = []
    for value in values:
        ability = normalize_ability(value)
        if ability is not None:
            result.append(ability)
    return tuple(result)


def decision_from_dict(raw: Mapping[str, Any]) -> ResolvedDecision:
    """Parse the persisted ``{type, mode?, ...}`` mapping into a variant.

    Raises ValueError for an unknown type or ASI mode.
    """
    kind = raw.get("type")
    if kind == "choose-skill":
        return SkillChoice(_strings(raw.get("choices")))
    if kind == "choose-subclass":
        return SubclassChoice(str(raw.get("choice", "")))
    if kind == "choose-ability":
        return AbilityChoice(_abilities(raw.get("choices")))
    if kind == "choose-language":
        return LanguageChoice(_strings(raw.get("choices")))
    if kind == "choose-tool":
        return ToolChoice(_strings(raw.get("choices")))
    if kind == "choose-optional-feature":
        return OptionalFeatureChoice(
            feature_type=str(raw.get("featureType", "")),
            choices=_strings(raw.get("choices")),
        )
    if kind == "asi":
        mode = raw.get("mode")
        if mode == "ability":
            return AbilityScoreImprovement(_abilities(raw.get("abilities")))
        if mode == "feat":
            feat_raw = raw.get("feat")
            return FeatSelection(
                feat_id=str(raw.get("featId", "")),
                feat=feat_from_dict(feat_raw) if isinstance(feat_raw, Mapping) else None,
                ability_selection=normalize_ability(raw.get("abilitySelection")),
            )
        raise ValueError(f"Unknown ASI mode: {mode!r}")
    raise ValueError(f"Unknown decision type: {kind!r}")


def decision_to_dict(value: ResolvedDecision) -> dict[str, Any]:
    if isinstance(value, SubclassChoice):
        return {"type": value.kind, "choice": value.choice}
    if isinstance(value, AbilityScoreImprovement):
        return {
            "type": value.kind,
            "mode": value.mode,
            "abilities": [a.value for a in value.abilities],
        }
    if isinstance(value, FeatSelection):
        out: dict[str, Any] = {"type": value.kind, "mode": value.mode, "featId": value.feat_id}
        if value.feat is not None:
            out["feat"] = feat_to_dict(value.feat)
        if value.ability_selection is not None:
            out["abilitySelection"] = value.ability_selection.value
        return out
    if isinstance(value, AbilityChoice):
        return {"type": value.kind, "choices": [a.value for a in value.choices]}
    if isinstance(value, OptionalFeatureChoice):
        return {"type": value.kind, "featureType": value.feature_type, "choices": list(value.choices)}
    if isinstance(value, (SkillChoice, LanguageChoice, ToolChoice)):
        return {"type": value.kind, "choices": list(value.choices)}
    raise TypeError(f"Not a resolved decision: {value!r}")
