"""Tests for the build engine.

Unit tests use synthetic ancestry/background records and the curated
fighter/rogue metadata; no compendium files required.
"""

import json

import pytest

from charplanner.engine.build_config import BuildConfig
from charplanner.engine.build_engine import BuildState, build_character, resolve_class
from charplanner.models.constants import Ability
from charplanner.models.decisions import (
    AbilityChoice,
    AbilityScoreImprovement,
    FeatSelection,
    LanguageChoice,
    OptionalFeatureChoice,
    SkillChoice,
    SubclassChoice,
    ToolChoice,
)
from charplanner.models.feature import FeatureInstance, MaxFeature, SetFeature
from charplanner.models.records import (
    AbilityBonusChoice,
    AncestryRecord,
    BackgroundRecord,
    ChoicePrompt,
    FeatDefinition,
    OptionalFeatureRecord,
)
from charplanner.parser.record_parser import parse_ancestry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _half_elf() -> AncestryRecord:
    return AncestryRecord(
        id="half-elf",
        name="Half-Elf",
        ability_bonuses={Ability.CHA: 2},
        ability_choices=(
            AbilityBonusChoice(
                (Ability.STR, Ability.DEX, Ability.CON, Ability.INT, Ability.WIS), count=2,
            ),
        ),
        speed=30,
        languages=("Common", "Elvish"),
        features=(
            MaxFeature(id="darkvision", name="Darkvision", source=("Half-Elf",), payload={"range": 60}),
            SetFeature(id="fey-ancestry", name="Fey Ancestry", source=("Half-Elf",)),
        ),
    )


def _sage() -> BackgroundRecord:
    return BackgroundRecord(
        id="sage",
        name="Sage",
        skill_proficiencies=("Arcana", "History"),
        language_choices=(ChoicePrompt(("Elvish", "Dwarvish", "Draconic"), 2),),
        tool_choices=(ChoicePrompt(("Calligrapher's supplies", "Cartographer's tools")),),
        features=(SetFeature(id="researcher", name="Researcher", source=("Sage",)),),
    )


FIGHTING_STYLE_ID = "fighter-optional-fighting-style-0-level-1"


def _fighter(level: int = 1) -> BuildState:
    """A fighter with level-1 skills and fighting style already chosen."""
    return (
        BuildState()
        .with_class("fighter")
        .with_level(level)
        .resolve_decision("fighter-level-1-skills", SkillChoice(("Athletics", "Perception")))
        .resolve_decision(FIGHTING_STYLE_ID, OptionalFeatureChoice("fighting-style", ("defense",)))
    )


def _complete_fighter_4() -> BuildState:
    return (
        _fighter(4)
        .resolve_decision("fighter-subclass-choice", SubclassChoice("fighter-champion"))
        .resolve_decision("fighter-level-4-asi", AbilityScoreImprovement((Ability.STR, Ability.STR)))
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestNoClass:
    def test_default_state_warns_for_class(self):
        result = build_character(BuildState())
        assert [w.category for w in result.warnings] == ["class"]
        assert not result.is_complete
        assert result.character.level == 0
        assert result.character.hp == 0
        assert result.character.classes == ()
        assert result.character.proficiency_bonus == 0

    def test_level_zero_without_class_is_quiet(self):
        result = build_character(BuildState().with_level(0))
        assert result.warnings == ()

    def test_unknown_class_id_has_no_definition(self):
        state = BuildState().with_class("artificer")
        assert resolve_class(state) is None
        assert build_character(state).warnings[0].category == "class"


class TestFighter:
    def test_level_one_complete(self):
        result = build_character(_fighter())
        character = result.character
        assert result.is_complete
        assert character.hp == 10
        assert character.proficiency_bonus == 2
        assert character.saving_throws == (Ability.STR, Ability.CON)
        assert character.skills == ("Athletics", "Perception")
        assert character.armor_proficiencies == ("All armor", "Shields")
        assert character.other_proficiencies == ("Vehicle (land)",)
        assert [f.id for f in character.features] == ["fighting-style", "second-wind", "defense"]
        assert character.classes[0].class_id == "fighter"

    def test_derived_values(self):
        state = _fighter().with_base_ability(Ability.DEX, 14).with_base_ability(Ability.WIS, 12)
        character = build_character(state).character
        assert character.armor_class == 12
        assert character.speed == 30
        # 10 + WIS +1 + proficiency 2 (Perception chosen)
        assert character.passive_perception == 13

    def test_level_four_complete(self):
        result = build_character(_complete_fighter_4())
        assert result.is_complete
        assert result.pending_decisions == ()
        assert result.character.abilities.asi[Ability.STR] == 2
        assert result.character.abilities.total[Ability.STR] == 12
        assert result.character.classes[0].subclass_id == "fighter-champion"
        assert [s.level for s in result.character.history] == [1, 2, 3, 4]

    def test_pending_asi_at_level_four(self):
        state = _fighter(4).resolve_decision("fighter-subclass-choice", SubclassChoice("fighter-champion"))
        result = build_character(state)
        assert [d.id for d in result.pending_decisions] == ["fighter-level-4-asi"]
        assert [w.decision_id for w in result.warnings] == ["fighter-level-4-asi"]
        assert result.character.pending_decisions == result.pending_decisions

    def test_level_zero_keeps_saves_only(self):
        character = build_character(BuildState().with_class("rogue").with_level(0)).character
        assert character.saving_throws == (Ability.DEX, Ability.INT)
        assert character.armor_proficiencies == ()
        assert character.tool_proficiencies == ()
        assert character.history == ()

    def test_class_tools_at_level_one(self):
        state = BuildState().with_class("rogue")
        assert "Thieves' tools" in build_character(state).character.tool_proficiencies


class TestWarningGating:
    def test_wrong_skill_count_is_one_warning_not_pending(self):
        state = _fighter().resolve_decision(
            "fighter-level-1-skills", SkillChoice(("Athletics",)),
        )
        result = build_character(state)
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.category == "skills"
        assert warning.decision_id == "fighter-level-1-skills"
        assert result.pending_decisions == ()
        assert result.character.skills == ("Athletics",)

    def test_skill_outside_options_applies_with_warning(self):
        state = _fighter().resolve_decision(
            "fighter-level-1-skills", SkillChoice(("Athletics", "Arcana")),
        )
        result = build_character(state)
        assert [w.category for w in result.warnings] == ["skills"]
        assert "Arcana" in result.character.skills


class TestDeterminism:
    def test_same_state_same_output(self):
        state = _complete_fighter_4().with_ancestry(_half_elf()).with_background(_sage())
        first = build_character(state).to_dict()
        second = build_character(state).to_dict()
        assert first == second
        json.dumps(first)

    def test_lower_then_raise_keeps_answers(self):
        state = _complete_fighter_4()
        lowered = state.with_level(1)
        low = build_character(lowered)
        assert len(low.character.history) == 1
        assert low.character.abilities.asi[Ability.STR] == 0
        assert "fighter-level-4-asi" in lowered.resolved_decisions
        assert low.character.classes[0].subclass_id is None
        assert low.is_complete

        raised = build_character(lowered.with_level(4))
        assert "fighter-level-4-asi" not in [d.id for d in raised.pending_decisions]
        assert raised.character.abilities.asi[Ability.STR] == 2
        assert raised.to_dict() == build_character(state).to_dict()


class TestFeats:
    def test_athlete_end_to_end(self):
        state = _complete_fighter_4().resolve_decision("fighter-level-4-asi", FeatSelection("athlete"))
        character = build_character(state).character
        assert character.abilities.asi[Ability.STR] == 1
        assert character.abilities.total[Ability.STR] == 11
        assert "athlete" in [f.id for f in character.features]

    def test_state_feat_table(self):
        keen = FeatDefinition(
            id="keen-sight",
            name="Keen Sight",
            ability_increases={Ability.WIS: 1},
            features=(
                MaxFeature(
                    id="darkvision", name="Darkvision",
                    source=("Feat: Keen Sight",), payload={"range": 120},
                ),
            ),
        )
        state = (
            _complete_fighter_4()
            .with_ancestry(_half_elf())
            .resolve_decision("ancestry-half-elf-ability-0", AbilityChoice((Ability.STR, Ability.CON)))
            .with_feats({"keen-sight": keen})
            .resolve_decision("fighter-level-4-asi", FeatSelection("keen-sight"))
        )
        character = build_character(state).character
        darkvision = next(f for f in character.features if f.id == "darkvision")
        assert darkvision.payload == {"range": 120}
        assert darkvision.source == ("Half-Elf", "Feat: Keen Sight")
        assert [f.id for f in character.features].count("darkvision") == 1
        assert character.abilities.asi[Ability.WIS] == 1


class TestAncestry:
    def test_ability_choice_pending(self):
        result = build_character(_fighter().with_ancestry(_half_elf()))
        assert [d.id for d in result.pending_decisions] == ["ancestry-half-elf-ability-0"]
        assert result.pending_decisions[0].kind == "choose-ability"
        assert result.character.abilities.racial[Ability.CHA] == 2

    def test_ability_choice_applied(self):
        state = _fighter().with_ancestry(_half_elf()).resolve_decision(
            "ancestry-half-elf-ability-0", AbilityChoice((Ability.STR, Ability.DEX)),
        )
        result = build_character(state)
        assert result.is_complete
        racial = result.character.abilities.racial
        assert racial[Ability.STR] == 1
        assert racial[Ability.DEX] == 1
        assert racial[Ability.CHA] == 2
        assert result.character.languages == ("Common", "Elvish")
        assert result.character.overview["race"] == "Half-Elf"

    def test_ability_choice_count_warns(self):
        state = _fighter().with_ancestry(_half_elf()).resolve_decision(
            "ancestry-half-elf-ability-0", AbilityChoice((Ability.STR,)),
        )
        result = build_character(state)
        assert [w.category for w in result.warnings] == ["ability"]
        assert result.character.abilities.racial[Ability.STR] == 1

    def test_racial_bonus_feeds_hit_points(self):
        dwarf = AncestryRecord(id="dwarf", name="Dwarf", ability_bonuses={Ability.CON: 2}, speed=25)
        character = build_character(_fighter().with_ancestry(dwarf)).character
        assert character.hp == 11
        assert character.speed == 25

    def test_id_only_ancestry_contributes_nothing(self):
        state = _fighter().with_ancestry("half-elf")
        result = build_character(state)
        assert state.ancestry_id == "half-elf"
        assert result.character.languages == ()
        assert result.is_complete


class TestBackground:
    def test_choices_pending(self):
        result = build_character(_fighter().with_background(_sage()))
        assert [d.id for d in result.pending_decisions] == [
            "background-language-sage-0",
            "background-tool-sage-0",
        ]
        assert result.character.skills == ("Arcana", "History", "Athletics", "Perception")

    def test_choices_applied(self):
        state = (
            _fighter()
            .with_background(_sage())
            .resolve_decision("background-language-sage-0", LanguageChoice(("Elvish", "Draconic")))
            .resolve_decision("background-tool-sage-0", ToolChoice(("Cartographer's tools",)))
        )
        result = build_character(state)
        assert result.is_complete
        assert result.character.languages == ("Elvish", "Draconic")
        assert result.character.tool_proficiencies == ("Cartographer's tools",)
        assert [f.id for f in result.character.features][0] == "researcher"


class TestOptionalFeatures:
    def _unstyled(self) -> BuildState:
        return _fighter().clear_decision(FIGHTING_STYLE_ID)

    def test_fighting_style_pending(self):
        result = build_character(self._unstyled())
        assert [d.id for d in result.pending_decisions] == [FIGHTING_STYLE_ID]
        decision = result.pending_decisions[0]
        assert decision.kind == "choose-optional-feature"
        assert decision.label == "Choose 1 optional feature (Fighting Style)"
        assert (decision.min, decision.max, decision.level) == (1, 1, 1)
        assert [o.id for o in decision.options][:2] == ["defense", "dueling"]
        assert [w.category for w in result.warnings] == ["decision"]
        assert result.character.history[0].decisions_raised[0].id == FIGHTING_STYLE_ID

    def test_fighting_style_applied(self):
        result = build_character(_fighter())
        assert result.is_complete
        defense = next(f for f in result.character.features if f.id == "defense")
        assert isinstance(defense, SetFeature)
        assert defense.name == "Defense"
        assert defense.source == ("Fighter Level 1 Optional Feature: Fighting Style",)
        assert defense.description == "+1 to AC while wearing armor."
        assert "defense" in [f.id for f in result.character.history[0].features_gained]

    def test_wrong_selection_warns_and_stays_pending(self):
        state = _fighter().resolve_decision(
            FIGHTING_STYLE_ID, OptionalFeatureChoice("fighting-style", ("defense", "dueling")),
        )
        result = build_character(state)
        assert [w.category for w in result.warnings] == ["optional-feature", "decision"]
        assert [d.id for d in result.pending_decisions] == [FIGHTING_STYLE_ID]
        assert "defense" not in [f.id for f in result.character.features]

    def test_unknown_option_stays_pending(self):
        state = _fighter().resolve_decision(
            FIGHTING_STYLE_ID, OptionalFeatureChoice("fighting-style", ("archery-plus",)),
        )
        assert [d.id for d in build_character(state).pending_decisions] == [FIGHTING_STYLE_ID]

    def test_other_feature_type_is_ignored(self):
        state = _fighter().resolve_decision(
            FIGHTING_STYLE_ID, OptionalFeatureChoice("eldritch-invocation", ("defense",)),
        )
        result = build_character(state)
        assert [w.category for w in result.warnings] == ["decision"]
        assert "defense" not in [f.id for f in result.character.features]

    def test_state_records_extend_and_replace_curated(self):
        state = (
            _fighter()
            .with_optional_features([
                OptionalFeatureRecord(
                    id="defense", name="Defense", feature_types=("fighting-style",),
                    description="Armored: +1 AC.", source="PHB",
                ),
                OptionalFeatureRecord(
                    id="blind-fighting", name="Blind Fighting", feature_types=("fighting-style",),
                ),
            ])
        )
        defense = next(f for f in build_character(state).character.features if f.id == "defense")
        assert defense.source == ("Fighter Level 1 Optional Feature: Fighting Style", "Source: PHB")
        assert defense.description == "Armored: +1 AC."

        blind = state.resolve_decision(
            FIGHTING_STYLE_ID, OptionalFeatureChoice("fighting-style", ("blind-fighting",)),
        )
        assert "blind-fighting" in [f.id for f in build_character(blind).character.features]

    def test_with_optional_features_accepts_mapping(self):
        record = OptionalFeatureRecord(id="blind-fighting", name="Blind Fighting")
        state = BuildState().with_optional_features({"ignored-key": record})
        assert state.optional_features == {"blind-fighting": record}


class TestBareFeatureRecords:
    def test_bare_feature_instance_builds_as_flag(self):
        ancestry = parse_ancestry({"name": "X", "features": [FeatureInstance(id="f", name="F")]})
        result = build_character(_fighter().with_ancestry(ancestry))
        feature = result.character.features[0]
        assert feature.id == "f"
        assert isinstance(feature, SetFeature)
        assert result.is_complete


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_transitions_do_not_mutate(self):
        state = BuildState()
        state.with_class("fighter").with_level(5)
        assert state.class_id is None
        assert state.level == 1

    def test_base_ability_range(self):
        state = BuildState().with_base_ability("str", 30)
        assert state.base_abilities[Ability.STR] == 30
        with pytest.raises(ValueError, match="out of range"):
            state.with_base_ability(Ability.STR, 31)
        with pytest.raises(ValueError, match="out of range"):
            state.with_base_ability(Ability.STR, 0)
        with pytest.raises(ValueError, match="Unknown ability"):
            state.with_base_ability("luck", 10)

    def test_custom_range(self):
        cfg = BuildConfig(min_score=3, max_score=18)
        with pytest.raises(ValueError):
            BuildState().with_base_ability(Ability.CON, 19, cfg)

    def test_boss_array(self):
        state = BuildState().apply_boss_array()
        assert state.ability_method == "boss-array"
        assert [state.base_abilities[a] for a in Ability] == [17, 15, 13, 13, 11, 9]

    def test_ability_method(self):
        assert BuildState().with_ability_method("boss-array").ability_method == "boss-array"
        with pytest.raises(ValueError):
            BuildState().with_ability_method("point-buy")

    def test_same_class_keeps_decisions(self):
        state = _fighter().with_class("fighter")
        assert "fighter-level-1-skills" in state.resolved_decisions

    def test_class_change_clears_decisions(self):
        state = _fighter().with_class("rogue")
        assert state.resolved_decisions == {}
        assert state.class_id == "rogue"

    def test_level_clamped(self):
        assert BuildState().with_level(25).level == 20
        assert BuildState().with_level(-3).level == 0

    def test_clear_decision(self):
        state = _fighter().clear_decision("fighter-level-1-skills")
        assert list(state.resolved_decisions) == [FIGHTING_STYLE_ID]
        assert _fighter().clear_decision("missing").resolved_decisions == _fighter().resolved_decisions

    def test_basics(self):
        state = BuildState().with_basics(name="Tamsin", alignment="Neutral Good")
        character = build_character(state).character
        assert character.name == "Tamsin"
        assert character.overview["alignment"] == "Neutral Good"


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_round_trip(self):
        state = (
            _complete_fighter_4()
            .with_basics(name="Tamsin", campaign_notes="Owes the guild")
            .apply_boss_array()
            .with_ancestry("half-elf")
            .with_background("sage")
            .resolve_decision("ancestry-half-elf-ability-0", AbilityChoice((Ability.STR, Ability.DEX)))
        )
        raw = state.to_dict()
        json.dumps(raw)
        restored = BuildState.from_dict(raw)
        assert restored.to_dict() == raw
        assert restored == state

    def test_records_are_not_embedded(self):
        raw = _fighter().with_ancestry(_half_elf()).to_dict()
        assert raw["ancestryId"] == "half-elf"
        assert "ancestry" not in raw
        assert BuildState.from_dict(raw).ancestry is None

    def test_missing_fields_default(self):
        state = BuildState.from_dict({})
        assert state.level == 1
        assert state.class_id is None
        assert state.base_abilities[Ability.WIS] == 10

    def test_unknown_decision_type_raises(self):
        raw = _fighter().to_dict()
        raw["resolvedDecisions"]["x"] = {"type": "choose-pet", "choice": "owl"}
        with pytest.raises(ValueError):
            BuildState.from_dict(raw)

    def test_unknown_ability_method_raises(self):
        with pytest.raises(ValueError, match="Unknown ability method"):
            BuildState.from_dict({"abilityMethod": "rolled"})
