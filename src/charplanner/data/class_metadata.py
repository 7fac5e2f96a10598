"""Curated class metadata used to fill gaps in compendium class records.

Keyed by class id. The compendium rarely carries per-level features or ASI
levels in a usable form, so these entries are the fallback source for them.
"""

from charplanner.data.optional_features import FIGHTING_STYLE
from charplanner.models.constants import Ability
from charplanner.models.feature import SetFeature
from charplanner.models.records import (
    ClassDefinition,
    OptionalFeatureProgression,
    SkillChoices,
    SubclassDefinition,
)


def _feature(feature_id: str, name: str, source: str, description: str) -> SetFeature:
    return SetFeature(id=feature_id, name=name, source=(source,), description=description)


FIGHTER = ClassDefinition(
    id="fighter",
    name="Fighter",
    primary_ability=Ability.STR,
    hit_die=10,
    saving_throws=(Ability.STR, Ability.CON),
    skill_choices=SkillChoices(
        count=2,
        options=(
            "Acrobatics",
            "Animal Handling",
            "Athletics",
            "History",
            "Insight",
            "Intimidation",
            "Perception",
            "Survival",
        ),
    ),
    armor_proficiencies=("All armor", "Shields"),
    weapon_proficiencies=("Simple weapons", "Martial weapons"),
    tool_proficiencies=(),
    other_proficiencies=("Vehicle (land)",),
    subclasses=(
        SubclassDefinition(
            id="fighter-champion",
            name="Champion",
            description="Focus on raw physical power and improved critical strikes.",
        ),
        SubclassDefinition(
            id="fighter-battle-master",
            name="Battle Master",
            description="Employ superior combat maneuvers to control the battlefield.",
        ),
        SubclassDefinition(
            id="fighter-eldritch-knight",
            name="Eldritch Knight",
            description="Blend martial prowess with arcane spellcasting.",
            spellcasting_ability=Ability.INT,
        ),
    ),
    subclass_level=3,
    features_by_level={
        1: (
            _feature("fighting-style", "Fighting Style", "Fighter 1",
                     "Adopt a fighting style to specialize your combat approach."),
            _feature("second-wind", "Second Wind", "Fighter 1",
                     "Use a bonus action to regain hit points equal to 1d10 + fighter level "
                     "once per rest."),
        ),
        2: (
            _feature("action-surge", "Action Surge", "Fighter 2",
                     "Take one additional action on your turn once per short or long rest."),
        ),
        3: (
            _feature("martial-archetype", "Martial Archetype", "Fighter 3",
                     "Choose a martial archetype that shapes your advanced combat training."),
        ),
        5: (
            _feature("extra-attack", "Extra Attack", "Fighter 5",
                     "You can attack twice, instead of once, whenever you take the Attack "
                     "action on your turn."),
        ),
        9: (
            _feature("indomitable", "Indomitable", "Fighter 9",
                     "Reroll a failed saving throw once per long rest."),
        ),
        13: (
            _feature("superior-critical", "Improved Critical", "Fighter 13",
                     "Your weapon attacks score a critical hit on a roll of 18-20."),
        ),
        17: (
            _feature("action-surge-2", "Action Surge (Second Use)", "Fighter 17",
                     "Use Action Surge twice between rests."),
        ),
    },
    asi_levels=(4, 6, 8, 12, 14, 16, 19),
    optional_feature_progression=(
        OptionalFeatureProgression(
            id="fighting-style",
            name="Fighting Style",
            feature_types=(FIGHTING_STYLE,),
            steps=((1, 1),),
        ),
    ),
)


ROGUE = ClassDefinition(
    id="rogue",
    name="Rogue",
    primary_ability=Ability.DEX,
    hit_die=8,
    saving_throws=(Ability.DEX, Ability.INT),
    skill_choices=SkillChoices(
        count=4,
        options=(
            "Acrobatics",
            "Athletics",
            "Deception",
            "Insight",
            "Intimidation",
            "Investigation",
            "Perception",
            "Performance",
            "Persuasion",
            "Sleight of Hand",
            "Stealth",
        ),
    ),
    armor_proficiencies=("Light armor",),
    weapon_proficiencies=(
        "Simple weapons",
        "Hand crossbows",
        "Longswords",
        "Rapiers",
        "Shortswords",
    ),
    tool_proficiencies=("Thieves' tools",),
    other_proficiencies=(),
    subclasses=(
        SubclassDefinition(
            id="rogue-thief",
            name="Thief",
            description="Master quick hands, agility, and fast reflexes for daring exploits.",
        ),
        SubclassDefinition(
            id="rogue-assassin",
            name="Assassin",
            description="Strike swiftly from the shadows with deadly precision.",
        ),
        SubclassDefinition(
            id="rogue-arcane-trickster",
            name="Arcane Trickster",
            description="Blend roguish talent with arcane tricks and illusions.",
            spellcasting_ability=Ability.INT,
        ),
    ),
    subclass_level=3,
    features_by_level={
        1: (
            _feature("expertise", "Expertise", "Rogue 1",
                     "Double proficiency bonus for two skills you are proficient in."),
            _feature("sneak-attack", "Sneak Attack", "Rogue 1",
                     "Deal an extra 1d6 damage once per turn when conditions are met."),
            _feature("thieves-cant", "Thieves' Cant", "Rogue 1",
                     "Secret rogues' code of speech, jargon, and symbols."),
        ),
        2: (
            _feature("cunning-action", "Cunning Action", "Rogue 2",
                     "Dash, Disengage, or Hide as a bonus action each turn."),
        ),
        3: (
            _feature("rogue-archetype", "Roguish Archetype", "Rogue 3",
                     "Choose an archetype that shapes your advanced techniques."),
        ),
        5: (
            _feature("uncanny-dodge", "Uncanny Dodge", "Rogue 5",
                     "Use reaction to halve damage from an attacker you can see."),
        ),
        7: (
            _feature("evasion", "Evasion", "Rogue 7",
                     "Take no damage on successful Dex saves vs. effects that allow half damage."),
        ),
        11: (
            _feature("reliable-talent", "Reliable Talent", "Rogue 11",
                     "Treat any ability check roll less than 10 as a 10 if proficient."),
        ),
        14: (
            _feature("blindsense", "Blindsense", "Rogue 14",
                     "You can sense hidden or invisible creatures within 10 feet."),
        ),
        17: (
            _feature("stroke-of-luck", "Stroke of Luck", "Rogue 17",
                     "Turn a miss into a hit or failed ability check into a success once per rest."),
        ),
    },
    asi_levels=(4, 8, 10, 12, 16, 19),
)


CLASS_METADATA: dict[str, ClassDefinition] = {
    FIGHTER.id: FIGHTER,
    ROGUE.id: ROGUE,
}
