"""Build engine: resolves a BuildState into a ResolvedCharacter.

BuildState holds every player choice. Its ``with_*`` transitions return a
new state and never mutate the old one, so a UI can keep an undo stack of
plain values. build_character() is a pure function over a state: it walks
ancestry, background, and class levels, merges features through the
ledger, and reports anything unfinished or out of bounds as BuildWarnings
instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from charplanner.data.class_metadata import CLASS_METADATA
from charplanner.engine.build_config import BuildConfig
from charplanner.engine.feature_ledger import FeatureLedger
from charplanner.engine.level_resolver import (
    BuildWarning,
    LevelResolution,
    resolve_levels,
    unresolved_warning,
)
from charplanner.engine.metadata import merge_class_metadata
from charplanner.models.abilities import ability_modifier, proficiency_bonus
from charplanner.models.character import (
    AbilityBlock,
    Basics,
    ClassLevel,
    ResolvedCharacter,
)
from charplanner.models.constants import ABILITY_LIST, Ability, normalize_ability, normalize_skill
from charplanner.models.decisions import (
    AbilityChoice,
    Decision,
    LanguageChoice,
    ResolvedDecision,
    SkillChoice,
    ToolChoice,
    ancestry_ability_decision_id,
    background_decision_id,
    decision_from_dict,
    decision_to_dict,
)
from charplanner.models.records import (
    AncestryRecord,
    BackgroundRecord,
    ChoicePrompt,
    ClassDefinition,
    FeatDefinition,
    OptionalFeatureRecord,
)
from charplanner.parser.entries import dedupe
from charplanner.parser.optional_feature_parser import optional_feature_catalogue

ABILITY_METHODS = ("manual", "boss-array")
_DEFAULT_SCORE = BuildConfig().default_score


def _default_abilities() -> dict[Ability, int]:
    return {ability: _DEFAULT_SCORE for ability in ABILITY_LIST}


# ---------------------------------------------------------------------------
# Build state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildState:
    """Every choice for one character. Treat as immutable; use with_* to change."""

    id: str = "character-1"
    basics: Basics = field(default_factory=lambda: Basics(name="New Character"))
    ability_method: str = "manual"
    base_abilities: dict[Ability, int] = field(default_factory=_default_abilities)
    ancestry_id: str | None = None
    ancestry: AncestryRecord | None = None
    background_id: str | None = None
    background: BackgroundRecord | None = None
    class_id: str | None = None
    class_definition: ClassDefinition | None = None
    level: int = 1                 # 0 = no class levels yet
    resolved_decisions: dict[str, ResolvedDecision] = field(default_factory=dict)
    feats: dict[str, FeatDefinition] = field(default_factory=dict)
    optional_features: dict[str, OptionalFeatureRecord] = field(default_factory=dict)

    # --- Transitions -------------------------------------------------------

    def with_basics(self, **changes: str) -> BuildState:
        """Update free-text basics, e.g. ``with_basics(name="Tamsin")``."""
        return replace(self, basics=replace(self.basics, **changes))

    def with_ability_method(self, method: str) -> BuildState:
        if method not in ABILITY_METHODS:
            raise ValueError(f"ability method must be one of {ABILITY_METHODS}, got {method!r}")
        return replace(self, ability_method=method)

    def with_base_ability(
        self,
        ability: Ability | str,
        value: int,
        config: BuildConfig | None = None,
    ) -> BuildState:
        """Set one base score. Raises ValueError outside the configured range."""
        cfg = config or BuildConfig()
        key = normalize_ability(ability)
        if key is None:
            raise ValueError(f"Unknown ability: {ability!r}")
        if value < cfg.min_score or value > cfg.max_score:
            raise ValueError(
                f"{key.value} = {value} is out of range [{cfg.min_score}, {cfg.max_score}]"
            )
        abilities = dict(self.base_abilities)
        abilities[key] = value
        return replace(self, base_abilities=abilities)

    def apply_boss_array(self, config: BuildConfig | None = None) -> BuildState:
        """Assign the standard array in ability order and switch method."""
        cfg = config or BuildConfig()
        abilities = dict(self.base_abilities)
        for ability, score in zip(ABILITY_LIST, cfg.boss_array):
            abilities[ability] = score
        return replace(self, base_abilities=abilities, ability_method="boss-array")

    def with_ancestry(
        self,
        ancestry: str | AncestryRecord | None,
    ) -> BuildState:
        """Select an ancestry by id (record left for hydration) or by record."""
        if isinstance(ancestry, AncestryRecord):
            return replace(self, ancestry_id=ancestry.id, ancestry=ancestry)
        return replace(self, ancestry_id=ancestry, ancestry=None)

    def with_background(
        self,
        background: str | BackgroundRecord | None,
    ) -> BuildState:
        if isinstance(background, BackgroundRecord):
            return replace(self, background_id=background.id, background=background)
        return replace(self, background_id=background, background=None)

    def with_class(
        self,
        cls: str | ClassDefinition | None,
    ) -> BuildState:
        """Select a class. Switching to a different class drops all answers."""
        if isinstance(cls, ClassDefinition):
            class_id, definition = cls.id, cls
        else:
            class_id, definition = cls, None
        decisions = self.resolved_decisions if class_id == self.class_id else {}
        return replace(
            self,
            class_id=class_id,
            class_definition=definition,
            resolved_decisions=dict(decisions),
        )

    def with_level(self, level: int, config: BuildConfig | None = None) -> BuildState:
        """Set the target level, clamped to 0..max_level."""
        cfg = config or BuildConfig()
        return replace(self, level=max(0, min(cfg.max_level, level)))

    def with_feats(self, feats: Mapping[str, FeatDefinition]) -> BuildState:
        return replace(self, feats=dict(feats))

    def with_optional_features(
        self,
        records: Mapping[str, OptionalFeatureRecord] | Iterable[OptionalFeatureRecord],
    ) -> BuildState:
        """Compendium options; each replaces the curated option with its id."""
        values = records.values() if isinstance(records, Mapping) else records
        return replace(self, optional_features={record.id: record for record in values})

    def resolve_decision(self, decision_id: str, value: ResolvedDecision) -> BuildState:
        decisions = dict(self.resolved_decisions)
        decisions[decision_id] = value
        return replace(self, resolved_decisions=decisions)

    def clear_decision(self, decision_id: str) -> BuildState:
        decisions = dict(self.resolved_decisions)
        decisions.pop(decision_id, None)
        return replace(self, resolved_decisions=decisions)

    # --- Persistence -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON form keyed by decision id. Records are not embedded."""
        return {
            "id": self.id,
            "basics": self.basics.to_dict(),
            "abilityMethod": self.ability_method,
            "baseAbilities": {a.value: self.base_abilities.get(a) for a in ABILITY_LIST},
            "ancestryId": self.ancestry_id,
            "backgroundId": self.background_id,
            "classId": self.class_id,
            "level": self.level,
            "resolvedDecisions": {
                key: decision_to_dict(value)
                for key, value in sorted(self.resolved_decisions.items())
            },
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> BuildState:
        """Inverse of to_dict. Unknown decision types raise ValueError."""
        abilities = _default_abilities()
        raw_abilities = raw.get("baseAbilities")
        if isinstance(raw_abilities, Mapping):
            for key, value in raw_abilities.items():
                ability = normalize_ability(key)
                if ability is not None and isinstance(value, int):
                    abilities[ability] = value

        decisions: dict[str, ResolvedDecision] = {}
        raw_decisions = raw.get("resolvedDecisions")
        if isinstance(raw_decisions, Mapping):
            for key, value in raw_decisions.items():
                if isinstance(value, Mapping):
                    decisions[str(key)] = decision_from_dict(value)

        method = raw.get("abilityMethod", "manual")
        if method not in ABILITY_METHODS:
            raise ValueError(f"Unknown ability method: {method!r}")
        level = raw.get("level")

        def optional_id(key: str) -> str | None:
            value = raw.get(key)
            return value if isinstance(value, str) else None

        return cls(
            id=str(raw.get("id", "character-1")),
            basics=Basics.from_dict(raw.get("basics")),
            ability_method=method,
            base_abilities=abilities,
            ancestry_id=optional_id("ancestryId"),
            background_id=optional_id("backgroundId"),
            class_id=optional_id("classId"),
            level=level if isinstance(level, int) else 1,
            resolved_decisions=decisions,
        )


# ---------------------------------------------------------------------------
# Build result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildResult:
    character: ResolvedCharacter
    warnings: tuple[BuildWarning, ...] = ()
    pending_decisions: tuple[Decision, ...] = ()

    @property
    def is_complete(self) -> bool:
        """True when nothing needs attention; export and print gate on this."""
        return not self.warnings

    def to_dict(self) -> dict[str, Any]:
        return {
            "character": self.character.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "pendingDecisions": [d.to_dict() for d in self.pending_decisions],
        }


class _Collector:
    """Ordered, de-duplicated accumulators for one build pass."""

    def __init__(self) -> None:
        self.skills: list[str] = []
        self.languages: list[str] = []
        self.tools: list[str] = []
        self.pending: list[Decision] = []
        self.warnings: list[BuildWarning] = []

    def pend(self, decision: Decision) -> None:
        self.pending.append(decision)
        self.warnings.append(unresolved_warning(decision))

    def check_count(self, decision: Decision, chosen: list, category: str, options) -> None:
        if len(chosen) != decision.max:
            self.warnings.append(BuildWarning(
                category,
                f"{decision.display_label()}: {len(chosen)} chosen",
                None,
                decision.id,
            ))
            return
        invalid = [str(choice) for choice in chosen if choice not in options]
        if invalid:
            self.warnings.append(BuildWarning(
                category,
                f"{decision.display_label()}: not an option: {', '.join(invalid)}",
                None,
                decision.id,
            ))


def resolve_class(state: BuildState) -> ClassDefinition | None:
    """The state's class definition, or the curated one for a bare class id."""
    if state.class_definition is not None:
        return state.class_definition
    if state.class_id and state.class_id in CLASS_METADATA:
        return merge_class_metadata(state.class_id)
    return None


def _racial_bonuses(
    state: BuildState,
    ancestry: AncestryRecord | None,
    out: _Collector,
) -> dict[Ability, int]:
    racial = {ability: 0 for ability in ABILITY_LIST}
    if ancestry is None:
        return racial
    for ability, bonus in ancestry.ability_bonuses.items():
        racial[ability] += bonus

    for index, prompt in enumerate(ancestry.ability_choices):
        decision = Decision(
            id=ancestry_ability_decision_id(ancestry.id, index),
            kind="choose-ability",
            options=prompt.options,
            min=prompt.count,
            max=prompt.count,
            label=f"Choose {prompt.count} ability score(s) to increase by {prompt.amount}",
        )
        value = state.resolved_decisions.get(decision.id)
        if not isinstance(value, AbilityChoice):
            out.pend(decision)
            continue
        chosen = dedupe(value.choices)
        out.check_count(decision, chosen, "ability", prompt.options)
        for ability in chosen:
            racial[ability] += prompt.amount
    return racial


def _background_choices(
    state: BuildState,
    background: BackgroundRecord,
    kind: str,
    prompts: tuple[ChoicePrompt, ...],
    out: _Collector,
) -> list[str]:
    """Raise one decision per prompt; return whatever was chosen."""
    chosen_all: list[str] = []
    variant, decision_kind, target = {
        "skill": (SkillChoice, "choose-skill", "skill"),
        "language": (LanguageChoice, "choose-language", "language"),
        "tool": (ToolChoice, "choose-tool", "tool"),
    }[kind]
    for index, prompt in enumerate(prompts):
        options = prompt.options
        if kind == "skill":
            options = tuple(dedupe(normalize_skill(o) for o in options))
        if not options:
            continue
        decision = Decision(
            id=background_decision_id(kind, background.id, index),
            kind=decision_kind,
            options=options,
            min=prompt.count,
            max=prompt.count,
            label=f"Choose {prompt.count} background {target}(s)",
        )
        value = state.resolved_decisions.get(decision.id)
        if not isinstance(value, variant):
            out.pend(decision)
            continue
        chosen = dedupe(value.choices)
        out.check_count(decision, chosen, kind, options)
        chosen_all.extend(chosen)
    return chosen_all


def build_character(state: BuildState, config: BuildConfig | None = None) -> BuildResult:
    """Resolve *state* into a character plus warnings. Never raises for data."""
    cfg = config or BuildConfig()
    out = _Collector()
    ledger = FeatureLedger()
    ancestry = state.ancestry
    background = state.background
    cls = resolve_class(state)

    # Ancestry
    racial = _racial_bonuses(state, ancestry, out)
    if ancestry is not None:
        out.languages.extend(ancestry.languages)
        out.skills.extend(ancestry.skill_proficiencies)
        ledger.extend(ancestry.features)

    # Background
    if background is not None:
        out.skills.extend(background.skill_proficiencies)
        out.tools.extend(background.tool_proficiencies)
        out.languages.extend(background.languages)
        ledger.extend(background.features)
        out.skills.extend(_background_choices(state, background, "skill", background.skill_choices, out))
        out.languages.extend(
            _background_choices(state, background, "language", background.language_choices, out)
        )
        out.tools.extend(_background_choices(state, background, "tool", background.tool_choices, out))

    # Class levels
    pre_asi = {
        ability: state.base_abilities.get(ability, cfg.default_score) + racial[ability]
        for ability in ABILITY_LIST
    }
    if cls is None:
        levels = LevelResolution(asi_bonuses={ability: 0 for ability in ABILITY_LIST})
        if state.level >= 1:
            out.warnings.append(BuildWarning(
                "class", "Select a class to complete level progression.", None, None,
            ))
    else:
        levels = resolve_levels(
            cls, state.level, state.resolved_decisions, pre_asi, state.feats, cfg,
            optional_feature_catalogue(state.optional_features.values()),
        )
    ledger.extend(levels.class_features)
    ledger.extend(levels.feat_features)
    out.skills.extend(levels.skill_choices)
    out.pending.extend(levels.pending_decisions)
    out.warnings.extend(levels.warnings)

    asi = {ability: levels.asi_bonuses.get(ability, 0) for ability in ABILITY_LIST}
    base = {ability: state.base_abilities.get(ability, cfg.default_score) for ability in ABILITY_LIST}
    total = {ability: base[ability] + racial[ability] + asi[ability] for ability in ABILITY_LIST}

    has_levels = cls is not None and levels.levels > 0
    prof = proficiency_bonus(levels.levels)
    skills = tuple(dedupe(out.skills))
    perception = prof if "Perception" in skills else 0
    tools = list(out.tools)
    if has_levels:
        tools.extend(cls.tool_proficiencies)

    character = ResolvedCharacter(
        id=state.id,
        name=state.basics.name,
        descriptor=state.basics.descriptor,
        overview={
            "fullName": state.basics.name,
            "race": ancestry.name if ancestry is not None else None,
            "background": background.name if background is not None else None,
            "className": cls.name if cls is not None else None,
            "alignment": state.basics.alignment,
            "occupation": state.basics.occupation,
            "origin": state.basics.origin,
            "affiliations": state.basics.affiliations,
            "campaignNotes": state.basics.campaign_notes,
        },
        abilities=AbilityBlock(base=base, racial=racial, asi=asi, total=total),
        level=levels.levels,
        classes=(ClassLevel(cls.id, levels.levels, levels.subclass_id),) if cls is not None else (),
        proficiency_bonus=prof,
        hp=levels.hp,
        armor_class=10 + ability_modifier(total[Ability.DEX]),
        speed=ancestry.speed if ancestry is not None and ancestry.speed is not None else cfg.default_speed,
        passive_perception=10 + ability_modifier(total[Ability.WIS]) + perception,
        saving_throws=tuple(cls.saving_throws) if cls is not None else (),
        skills=skills,
        languages=tuple(dedupe(out.languages)),
        armor_proficiencies=tuple(cls.armor_proficiencies) if has_levels else (),
        weapon_proficiencies=tuple(cls.weapon_proficiencies) if has_levels else (),
        tool_proficiencies=tuple(dedupe(tools)),
        other_proficiencies=tuple(cls.other_proficiencies) if has_levels else (),
        features=tuple(ledger.features()),
        pending_decisions=tuple(out.pending),
        history=levels.history,
    )
    return BuildResult(
        character=character,
        warnings=tuple(out.warnings),
        pending_decisions=tuple(out.pending),
    )
