"""Normalise raw compendium feat records into FeatDefinitions.

Curated FEAT_METADATA (keyed by slug id) wins for description, ability
increases, and features; otherwise the record's own text is used and a
single flag feature ``feat-{id}`` is synthesised from the description.
"""

from collections.abc import Mapping
from typing import Any

from charplanner.data.feat_metadata import FEAT_METADATA
from charplanner.models.feature import SetFeature
from charplanner.models.records import FeatDefinition
from charplanner.parser.entries import extract_text, flatten_prerequisites, slugify


def default_feat_feature(feat_id: str, name: str, description: str | None) -> SetFeature | None:
    if not description:
        return None
    return SetFeature(
        id=f"feat-{feat_id}",
        name=name,
        source=(f"Feat: {name}",),
        description=description,
    )


def normalize_feat(raw: Mapping[str, Any]) -> FeatDefinition:
    """Resolve one raw feat record, preferring curated metadata when present."""
    name_value = raw.get("name")
    feat_id = slugify(name_value)
    if not feat_id:
        feat_id = slugify(raw.get("id")) if isinstance(raw.get("id"), str) else "feat"
    name = name_value if isinstance(name_value, str) else "Unknown Feat"
    metadata = FEAT_METADATA.get(feat_id)

    if metadata is not None:
        description: str | None = metadata.description
        features = metadata.features
        ability_increases = dict(metadata.ability_increases)
    else:
        description = extract_text(raw.get("description") or raw.get("entries"))
        default = default_feat_feature(feat_id, name, description)
        features = (default,) if default is not None else ()
        ability_increases = {}

    source = raw.get("source")
    return FeatDefinition(
        id=feat_id,
        name=name,
        description=description,
        ability_increases=ability_increases,
        features=features,
        prerequisites=tuple(flatten_prerequisites(raw.get("prerequisite"))),
        source=source if isinstance(source, str) else None,
    )


def build_feat_list(raw_feats: Any) -> list[FeatDefinition]:
    """Normalise a list of raw feats, sorted by name. Non-lists yield []."""
    if not isinstance(raw_feats, (list, tuple)) or not raw_feats:
        return []
    feats = [normalize_feat(entry) for entry in raw_feats if isinstance(entry, Mapping)]
    return sorted(feats, key=lambda feat: feat.name.lower())


def feat_from_metadata(feat_id: str) -> FeatDefinition | None:
    """FeatDefinition for a curated feat id, used when only the id is known."""
    metadata = FEAT_METADATA.get(feat_id)
    if metadata is None:
        return None
    name = metadata.features[0].name if metadata.features else feat_id.replace("-", " ").title()
    return FeatDefinition(
        id=feat_id,
        name=name,
        description=metadata.description,
        ability_increases=dict(metadata.ability_increases),
        features=metadata.features,
    )
