"""Curated optional features, keyed by id.

Compendium option records with the same id replace these entries.
"""

from charplanner.models.records import OptionalFeatureRecord


FIGHTING_STYLE = "fighting-style"


def _style(style_id: str, name: str, summary: str) -> OptionalFeatureRecord:
    return OptionalFeatureRecord(
        id=style_id,
        name=name,
        feature_types=(FIGHTING_STYLE,),
        description=summary,
    )


OPTIONAL_FEATURES: dict[str, OptionalFeatureRecord] = {
    record.id: record
    for record in (
        _style("defense", "Defense", "+1 to AC while wearing armor."),
        _style("dueling", "Dueling", "+2 damage when wielding a single one-handed melee weapon."),
        _style("interception", "Interception",
               "Use your reaction to reduce damage dealt to nearby allies."),
        _style("thrown-weapon", "Thrown Weapon Fighting",
               "Draw thrown weapons and add +2 damage on hits."),
        _style("two-weapon", "Two-Weapon Fighting", "Add ability modifier to off-hand attacks."),
        _style("unarmed", "Unarmed Fighting",
               "Deal 1d6/1d8 with unarmed strikes and extra grapple damage."),
    )
}
