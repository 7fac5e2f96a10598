"""Tests for the plain-JSON rendering of a resolved character."""

import json

from charplanner.engine.build_engine import BuildState, build_character
from charplanner.engine.level_resolver import BuildWarning
from charplanner.models.character import Basics
from charplanner.models.constants import Ability
from charplanner.models.decisions import SkillChoice, SubclassChoice


def _rogue_3() -> BuildState:
    return (
        BuildState(id="char-7")
        .with_basics(name="Wren", descriptor="Quiet lockpick", origin="Baldur's Gate")
        .with_class("rogue")
        .with_level(3)
        .resolve_decision(
            "rogue-level-1-skills",
            SkillChoice(("Stealth", "Perception", "Acrobatics", "Sleight of Hand")),
        )
        .resolve_decision("rogue-subclass-choice", SubclassChoice("rogue-thief"))
    )


class TestCharacterDict:
    def test_top_level_keys(self):
        out = build_character(_rogue_3()).character.to_dict()
        assert list(out) == [
            "id", "name", "descriptor", "overview", "abilities", "level", "classes",
            "profBonus", "hp", "ac", "speed", "passivePerception", "saves", "skills",
            "languages", "proficiencies", "features", "decisions", "history",
        ]
        json.dumps(out)

    def test_values(self):
        out = build_character(_rogue_3()).character.to_dict()
        assert out["id"] == "char-7"
        assert out["overview"]["fullName"] == "Wren"
        assert out["overview"]["origin"] == "Baldur's Gate"
        assert out["overview"]["className"] == "Rogue"
        assert out["overview"]["race"] is None
        assert out["classes"] == [{"classId": "rogue", "levels": 3, "subclassId": "rogue-thief"}]
        assert out["saves"] == {"proficient": ["DEX", "INT"]}
        assert out["proficiencies"]["tools"] == ["Thieves' tools"]
        assert out["abilities"]["total"] == {a.value: 10 for a in Ability}
        # d8: 8 at level 1, then 5 per level
        assert out["hp"] == 18
        assert out["decisions"] == []

    def test_history_shape(self):
        out = build_character(_rogue_3()).character.to_dict()
        first = out["history"][0]
        assert first["level"] == 1
        assert first["classId"] == "rogue"
        assert first["hpGained"] == 8
        assert first["decisionsRaised"][0]["id"] == "rogue-level-1-skills"
        assert first["decisionsRaised"][0]["type"] == "choose-skill"

    def test_pending_decision_shape(self):
        state = BuildState().with_class("fighter")
        out = build_character(state).to_dict()
        style, skills = out["pendingDecisions"]
        assert style["type"] == "choose-optional-feature"
        assert style["options"][0] == {
            "id": "defense",
            "name": "Defense",
            "featureTypes": ["fighting-style"],
            "description": "+1 to AC while wearing armor.",
        }
        assert skills["id"] == "fighter-level-1-skills"
        assert skills["min"] == skills["max"] == 2
        assert skills["level"] == 1
        assert out["warnings"][1] == {
            "category": "decision",
            "message": "Resolve pending decision: Choose 2 class skills",
            "level": 1,
            "decisionId": "fighter-level-1-skills",
        }
        assert out["character"]["decisions"] == out["pendingDecisions"]


class TestSmallShapes:
    def test_warning_optional_keys(self):
        assert BuildWarning("class", "Pick one").to_dict() == {"category": "class", "message": "Pick one"}

    def test_basics_round_trip(self):
        basics = Basics(name="Wren", campaign_notes="Owes a favour")
        raw = basics.to_dict()
        assert raw["campaignNotes"] == "Owes a favour"
        assert Basics.from_dict(raw) == basics
        assert Basics.from_dict(None) == Basics()
