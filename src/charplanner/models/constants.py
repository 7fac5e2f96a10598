"""Abilities, skills, and name lookups shared by the rules engine.

Ability keys are the three-letter compendium abbreviations. Skill names are
the display names used by class and background records.
"""

from enum import Enum


class Ability(str, Enum):
    """The six base ability scores, in canonical sheet order."""
    STR = "STR"
    DEX = "DEX"
    CON = "CON"
    INT = "INT"
    WIS = "WIS"
    CHA = "CHA"


ABILITY_LIST: tuple[Ability, ...] = tuple(Ability)

# Friendly display names
ABILITY_NAMES: dict[Ability, str] = {
    Ability.STR: "Strength",
    Ability.DEX: "Dexterity",
    Ability.CON: "Constitution",
    Ability.INT: "Intelligence",
    Ability.WIS: "Wisdom",
    Ability.CHA: "Charisma",
}

# Governing ability for each skill.
SKILL_ABILITY: dict[str, Ability] = {
    "Acrobatics": Ability.DEX,
    "Animal Handling": Ability.WIS,
    "Arcana": Ability.INT,
    "Athletics": Ability.STR,
    "Deception": Ability.CHA,
    "History": Ability.INT,
    "Insight": Ability.WIS,
    "Intimidation": Ability.CHA,
    "Investigation": Ability.INT,
    "Medicine": Ability.WIS,
    "Nature": Ability.INT,
    "Perception": Ability.WIS,
    "Performance": Ability.CHA,
    "Persuasion": Ability.CHA,
    "Religion": Ability.INT,
    "Sleight of Hand": Ability.DEX,
    "Stealth": Ability.DEX,
    "Survival": Ability.WIS,
}

SKILL_NAMES: frozenset[str] = frozenset(SKILL_ABILITY)

# Lower-cased compendium spellings -> canonical ability.
ABILITY_LOOKUP: dict[str, Ability] = {
    "str": Ability.STR,
    "strength": Ability.STR,
    "dex": Ability.DEX,
    "dexterity": Ability.DEX,
    "con": Ability.CON,
    "constitution": Ability.CON,
    "int": Ability.INT,
    "intelligence": Ability.INT,
    "wis": Ability.WIS,
    "wisdom": Ability.WIS,
    "cha": Ability.CHA,
    "charisma": Ability.CHA,
}

SKILL_LOOKUP: dict[str, str] = {name.lower(): name for name in SKILL_ABILITY}

# Average (rounded up) roll per hit die, used for levels 2+.
AVERAGE_HIT_DIE: dict[int, int] = {
    6: 4,
    8: 5,
    10: 6,
    12: 7,
}

NUMBER_WORDS: dict[str, int] = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
}


def normalize_ability(value: object) -> Ability | None:
    """Map 'str', 'Strength', 'STR', ... to an Ability, or None."""
    if value is None:
        return None
    if isinstance(value, Ability):
        return value
    return ABILITY_LOOKUP.get(str(value).strip().lower())


def normalize_skill(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return SKILL_LOOKUP.get(value.strip().lower())
