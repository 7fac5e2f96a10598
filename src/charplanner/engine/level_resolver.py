"""Level resolver: walks class levels 1..target and records what each grants.

Every call is a fresh forward pass from level 1. Hit points at each level
use the running CON total, so an ASI resolved at level 4 only affects
levels 5 and up. Levels above the target are never walked: decisions the
player resolved for them stay in state, unused, until the target rises
again.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from charplanner.data.optional_features import OPTIONAL_FEATURES
from charplanner.engine.build_config import BuildConfig
from charplanner.models.abilities import ability_modifier
from charplanner.models.character import LevelSnapshot
from charplanner.models.constants import ABILITY_LIST, AVERAGE_HIT_DIE, Ability
from charplanner.models.decisions import (
    AbilityScoreImprovement,
    Decision,
    FeatSelection,
    OptionalFeatureChoice,
    ResolvedDecision,
    SkillChoice,
    SubclassChoice,
    asi_decision_id,
    optional_feature_decision_id,
    skill_decision_id,
    subclass_decision_id,
)
from charplanner.models.feature import FeatureInstance, SetFeature
from charplanner.models.records import (
    ClassDefinition,
    FeatDefinition,
    OptionalFeatureProgression,
    OptionalFeatureRecord,
)
from charplanner.parser.entries import dedupe
from charplanner.parser.feat_parser import default_feat_feature, feat_from_metadata


@dataclass(frozen=True, slots=True)
class BuildWarning:
    """A single problem found while resolving a build. Never fatal."""

    category: str      # "class" | "decision" | "skills" | "asi" | "feat" | "subclass" | ...
    message: str
    level: int | None = None
    decision_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"category": self.category, "message": self.message}
        if self.level is not None:
            out["level"] = self.level
        if self.decision_id is not None:
            out["decisionId"] = self.decision_id
        return out


def unresolved_warning(decision: Decision) -> BuildWarning:
    return BuildWarning(
        "decision",
        f"Resolve pending decision: {decision.display_label()}",
        decision.level,
        decision.id,
    )


@dataclass(frozen=True, slots=True)
class LevelResolution:
    """Everything the level walk contributes to the final character."""

    history: tuple[LevelSnapshot, ...] = ()
    hp: int = 0
    levels: int = 0
    asi_bonuses: dict[Ability, int] = field(default_factory=dict)
    skill_choices: tuple[str, ...] = ()
    subclass_id: str | None = None
    class_features: tuple[FeatureInstance, ...] = ()
    feat_features: tuple[FeatureInstance, ...] = ()
    pending_decisions: tuple[Decision, ...] = ()
    warnings: tuple[BuildWarning, ...] = ()


def average_hit_die(hit_die: int) -> int:
    return AVERAGE_HIT_DIE.get(hit_die, math.ceil(hit_die / 2))


def hp_for_level(level: int, hit_die: int, con_modifier: int) -> int:
    """Level 1 takes the max die roll; later levels take the average, min 1."""
    if level == 1:
        return max(hit_die, hit_die + con_modifier)
    return max(1, average_hit_die(hit_die) + con_modifier)


def lookup_feat(
    selection: FeatSelection,
    feats: Mapping[str, FeatDefinition] | None,
) -> FeatDefinition | None:
    """Embedded record first, then the state's feat table, then curated data."""
    if selection.feat is not None:
        return selection.feat
    if feats and selection.feat_id in feats:
        return feats[selection.feat_id]
    return feat_from_metadata(selection.feat_id)


class _LevelWalk:
    """Mutable accumulator for a single resolve_levels() pass."""

    def __init__(
        self,
        cls: ClassDefinition,
        resolved: Mapping[str, ResolvedDecision],
        abilities: Mapping[Ability, int],
        feats: Mapping[str, FeatDefinition] | None,
        config: BuildConfig,
        optional_features: Mapping[str, OptionalFeatureRecord] | None = None,
    ) -> None:
        self.cls = cls
        self.resolved = resolved
        self.abilities = abilities
        self.feats = feats
        self.config = config
        self.optional_features = OPTIONAL_FEATURES if optional_features is None else optional_features
        self.asi: dict[Ability, int] = {ability: 0 for ability in ABILITY_LIST}
        self.hp = 0
        self.skill_choices: tuple[str, ...] = ()
        self.subclass_id: str | None = None
        self.class_features: list[FeatureInstance] = []
        self.feat_features: list[FeatureInstance] = []
        self.pending: list[Decision] = []
        self.warnings: list[BuildWarning] = []
        self.history: list[LevelSnapshot] = []

    def score(self, ability: Ability) -> int:
        return self.abilities.get(ability, self.config.default_score) + self.asi[ability]

    def pend(self, decision: Decision) -> None:
        self.pending.append(decision)
        self.warnings.append(unresolved_warning(decision))

    # --- Per-level steps ---------------------------------------------------

    def walk(self, level: int) -> None:
        cls = self.cls
        hp_gained = hp_for_level(level, cls.hit_die, ability_modifier(self.score(Ability.CON)))
        self.hp += hp_gained

        gained = list(cls.features_by_level.get(level, ()))
        raised: list[Decision] = []
        for progression in cls.optional_feature_progression:
            for index, (step_level, count) in enumerate(progression.steps):
                if step_level == level:
                    raised.append(self._optional_feature_decision(progression, index, level, count, gained))
        self.class_features.extend(gained)

        if level == 1 and cls.skill_choices.options:
            raised.append(self._skill_decision(level))
        if level in cls.asi_levels:
            raised.append(self._asi_decision(level))
        if cls.subclasses and cls.subclass_level and level == cls.subclass_level:
            raised.append(self._subclass_decision(level))

        self.history.append(LevelSnapshot(
            level=level,
            class_id=cls.id,
            hp_gained=hp_gained,
            features_gained=tuple(gained),
            decisions_raised=tuple(raised),
        ))

    def _optional_feature_decision(
        self,
        progression: OptionalFeatureProgression,
        index: int,
        level: int,
        count: int,
        gained: list[FeatureInstance],
    ) -> Decision:
        cls = self.cls
        pick = max(1, count)
        types = progression.feature_types
        options = tuple(
            record for record in self.optional_features.values()
            if any(t in record.feature_types for t in types)
        )
        decision = Decision(
            id=optional_feature_decision_id(cls.id, progression.id, index, level),
            kind="choose-optional-feature",
            options=options,
            min=pick,
            max=pick,
            label=f"Choose {pick} optional feature{'' if pick == 1 else 's'} ({progression.name})",
            level=level,
        )
        type_label = ", ".join(types)
        if not options:
            self.warnings.append(BuildWarning(
                "optional-feature",
                f"No optional features available for {cls.name} ({type_label}) at level {level}.",
                level, decision.id,
            ))
        elif len(options) < pick:
            self.warnings.append(BuildWarning(
                "optional-feature",
                f"Only {len(options)} optional feature{'' if len(options) == 1 else 's'} available "
                f"for {cls.name} ({type_label}) at level {level}; {pick} required.",
                level, decision.id,
            ))

        value = self.resolved.get(decision.id)
        if not isinstance(value, OptionalFeatureChoice) or value.feature_type not in types:
            self.pend(decision)
            return decision

        by_id = {record.id: record for record in options}
        picked = dedupe(c.strip() for c in value.choices if c.strip())
        if len(picked) != pick or any(choice not in by_id for choice in picked):
            self.warnings.append(BuildWarning(
                "optional-feature",
                f"Choose {pick} {progression.name} option{'' if pick == 1 else 's'} "
                f"from the available list, got: {', '.join(value.choices) or 'none'}",
                level, decision.id,
            ))
            self.pend(decision)
            return decision

        origin = f"{cls.name} Level {level} Optional Feature: {progression.name}"
        for choice in picked:
            record = by_id[choice]
            gained.append(SetFeature(
                id=record.id,
                name=record.name,
                source=(origin, f"Source: {record.source}") if record.source else (origin,),
                description=record.description,
            ))
        return decision

    def _skill_decision(self, level: int) -> Decision:
        choices = self.cls.skill_choices
        decision = Decision(
            id=skill_decision_id(self.cls.id, level),
            kind="choose-skill",
            options=tuple(choices.options),
            min=choices.count,
            max=choices.count,
            label=f"Choose {choices.count} class skills",
            level=level,
        )
        value = self.resolved.get(decision.id)
        if not isinstance(value, SkillChoice):
            self.pend(decision)
            return decision

        picked = tuple(dedupe(value.choices))
        self.skill_choices = picked
        invalid = [skill for skill in picked if skill not in choices.options]
        if len(picked) != choices.count:
            self.warnings.append(BuildWarning(
                "skills",
                f"Choose {choices.count} class skills, {len(picked)} chosen",
                level,
                decision.id,
            ))
        elif invalid:
            self.warnings.append(BuildWarning(
                "skills",
                f"Not a {self.cls.name} skill option: {', '.join(invalid)}",
                level,
                decision.id,
            ))
        return decision

    def _asi_decision(self, level: int) -> Decision:
        decision = Decision(
            id=asi_decision_id(self.cls.id, level),
            kind="asi",
            options=ABILITY_LIST,
            min=self.config.asi_total,
            max=self.config.asi_total,
            label="Ability Score Improvement or Feat",
            level=level,
        )
        value = self.resolved.get(decision.id)
        if isinstance(value, AbilityScoreImprovement):
            self._apply_ability_increase(value, decision)
        elif isinstance(value, FeatSelection):
            self._apply_feat(value, decision)
        else:
            self.pend(decision)
        return decision

    def _apply_ability_increase(self, value: AbilityScoreImprovement, decision: Decision) -> None:
        cfg = self.config
        bumps = value.increments()
        total = sum(bumps.values())
        if total == 0:
            self.warnings.append(BuildWarning(
                "asi", "Ability Score Improvement has no abilities selected",
                decision.level, decision.id,
            ))
        elif total > cfg.asi_total:
            self.warnings.append(BuildWarning(
                "asi",
                f"Ability Score Improvement grants +{total}, limit is +{cfg.asi_total}",
                decision.level, decision.id,
            ))
        for ability in ABILITY_LIST:
            if ability not in bumps:
                continue
            self.asi[ability] += bumps[ability]
            if self.score(ability) > cfg.score_ceiling:
                self.warnings.append(BuildWarning(
                    "asi",
                    f"{ability.value} would be {self.score(ability)}, above {cfg.score_ceiling}",
                    decision.level, decision.id,
                ))

    def _apply_feat(self, value: FeatSelection, decision: Decision) -> None:
        feat = lookup_feat(value, self.feats)
        if feat is None:
            self.warnings.append(BuildWarning(
                "feat", f"Unknown feat: {value.feat_id!r}", decision.level, decision.id,
            ))
            return

        eligible = [a for a in ABILITY_LIST if feat.ability_increases.get(a, 0) > 0]
        target: Ability | None = None
        if len(eligible) == 1:
            target = eligible[0]
        elif eligible:
            if value.ability_selection is None:
                primaries = [a for a in self.cls.primary_abilities if a in eligible]
                target = primaries[0] if primaries else eligible[0]
            elif value.ability_selection in eligible:
                target = value.ability_selection
            else:
                self.warnings.append(BuildWarning(
                    "feat",
                    f"{feat.name} cannot increase {value.ability_selection.value}",
                    decision.level, decision.id,
                ))
        if target is not None:
            self.asi[target] += feat.ability_increases[target]

        if feat.features:
            self.feat_features.extend(feat.features)
        else:
            default = default_feat_feature(feat.id, feat.name, feat.description)
            if default is not None:
                self.feat_features.append(default)

    def _subclass_decision(self, level: int) -> Decision:
        subclasses = self.cls.subclasses
        decision = Decision(
            id=subclass_decision_id(self.cls.id),
            kind="choose-subclass",
            options=tuple(subclasses),
            label="Choose a subclass",
            level=level,
        )
        value = self.resolved.get(decision.id)
        if isinstance(value, SubclassChoice):
            self.subclass_id = value.choice
            if value.choice not in {s.id for s in subclasses}:
                self.warnings.append(BuildWarning(
                    "subclass",
                    f"{value.choice!r} is not a {self.cls.name} subclass",
                    level, decision.id,
                ))
        elif len(subclasses) == 1:
            self.subclass_id = subclasses[0].id
        else:
            self.pend(decision)
        return decision


def resolve_levels(
    cls: ClassDefinition,
    target_level: int,
    resolved: Mapping[str, ResolvedDecision],
    abilities: Mapping[Ability, int],
    feats: Mapping[str, FeatDefinition] | None = None,
    config: BuildConfig | None = None,
    optional_features: Mapping[str, OptionalFeatureRecord] | None = None,
) -> LevelResolution:
    """Walk levels 1..target_level for *cls*.

    *abilities* are the totals before any ASI (base + racial); CON for hit
    points is read from them plus ASIs applied at earlier levels.
    *optional_features* is the option catalogue for optional feature picks;
    None means the curated one.
    """
    cfg = config or BuildConfig()
    walk = _LevelWalk(cls, resolved, abilities, feats, cfg, optional_features)
    for level in range(1, min(target_level, cfg.max_level) + 1):
        walk.walk(level)
    return LevelResolution(
        history=tuple(walk.history),
        hp=walk.hp,
        levels=len(walk.history),
        asi_bonuses=dict(walk.asi),
        skill_choices=walk.skill_choices,
        subclass_id=walk.subclass_id,
        class_features=tuple(walk.class_features),
        feat_features=tuple(walk.feat_features),
        pending_decisions=tuple(walk.pending),
        warnings=tuple(walk.warnings),
    )
