"""Tests for ability math and name normalisation."""

import pytest

from charplanner.models.abilities import ability_modifier, format_modifier, proficiency_bonus
from charplanner.models.constants import Ability, normalize_ability, normalize_skill


class TestAbilityModifier:
    @pytest.mark.parametrize(
        "score,expected",
        [(10, 0), (11, 0), (12, 1), (9, -1), (8, -1), (1, -5), (20, 5), (30, 10), (0, -5)],
    )
    def test_floor_division(self, score, expected):
        assert ability_modifier(score) == expected

    def test_negative_scores_round_down(self):
        assert ability_modifier(-1) == -6


class TestProficiencyBonus:
    @pytest.mark.parametrize(
        "level,expected",
        [(0, 0), (1, 2), (4, 2), (5, 3), (8, 3), (9, 4), (12, 4), (13, 5), (16, 5), (17, 6), (20, 6)],
    )
    def test_table(self, level, expected):
        assert proficiency_bonus(level) == expected

    def test_negative_level(self):
        assert proficiency_bonus(-3) == 0


class TestFormatModifier:
    def test_positive(self):
        assert format_modifier(3) == "+3"

    def test_negative(self):
        assert format_modifier(-1) == "-1"

    def test_zero_is_non_negative(self):
        assert format_modifier(0) == "+0"


class TestNormalisation:
    def test_ability_spellings(self):
        assert normalize_ability("str") == Ability.STR
        assert normalize_ability("Dexterity") == Ability.DEX
        assert normalize_ability(" CON ") == Ability.CON
        assert normalize_ability(Ability.WIS) == Ability.WIS

    def test_unknown_ability(self):
        assert normalize_ability("luck") is None
        assert normalize_ability(None) is None

    def test_skill_case_insensitive(self):
        assert normalize_skill("sleight of hand") == "Sleight of Hand"
        assert normalize_skill("Athletics") == "Athletics"

    def test_unknown_skill(self):
        assert normalize_skill("Basket Weaving") is None
        assert normalize_skill(3) is None
