"""Normalise raw compendium optional feature records (fighting styles,
invocations, ...) into OptionalFeatureRecords.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from charplanner.data.optional_features import OPTIONAL_FEATURES
from charplanner.models.records import OptionalFeatureRecord
from charplanner.parser.entries import dedupe, extract_text, slugify


def feature_types(raw: Mapping[str, Any]) -> tuple[str, ...]:
    """Slugged feature types from ``featureType`` / ``featureTypes`` (str or list)."""
    value = raw.get("featureTypes", raw.get("featureType"))
    values = [value] if isinstance(value, str) else value
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(dedupe(slugify(v) for v in values if isinstance(v, str) and v.strip()))


def normalize_optional_feature(raw: Mapping[str, Any]) -> OptionalFeatureRecord:
    name_value = raw.get("name")
    name = name_value.strip() if isinstance(name_value, str) and name_value.strip() else "Unknown Option"
    raw_id = raw.get("id")
    option_id = slugify(raw_id) if isinstance(raw_id, str) else ""
    if not option_id:
        option_id = slugify(name) or "option"

    description = raw.get("description") or raw.get("summary")
    if not isinstance(description, str):
        description = extract_text(raw.get("entries"))
    source = raw.get("source")
    return OptionalFeatureRecord(
        id=option_id,
        name=name,
        feature_types=feature_types(raw),
        description=description or None,
        source=source if isinstance(source, str) else None,
    )


def build_optional_feature_list(raw_options: Any) -> list[OptionalFeatureRecord]:
    """Normalise a list of raw option records, sorted by name. Non-lists yield []."""
    if not isinstance(raw_options, (list, tuple)) or not raw_options:
        return []
    options = [normalize_optional_feature(e) for e in raw_options if isinstance(e, Mapping)]
    return sorted(options, key=lambda option: option.name.lower())


def optional_feature_catalogue(
    records: Iterable[OptionalFeatureRecord] = (),
) -> dict[str, OptionalFeatureRecord]:
    """Curated options overlaid by *records*; a record replaces the curated entry with its id."""
    catalogue = dict(OPTIONAL_FEATURES)
    for record in records:
        catalogue[record.id] = record
    return catalogue
