"""Feature data model with one variant class per merge strategy.

A feature is a named capability granted by an ancestry, background, class
level, or feat. When two sources grant the same feature id, the variant of
the *incoming* instance decides how payloads combine (see FeatureLedger).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal


MergeStrategy = Literal["max", "sum", "set", "custom"]


@dataclass(frozen=True, slots=True)
class FeatureInstance:
    """Fields shared by every feature variant.

    Not instantiated directly; use one of the strategy variants below.
    """
    id: str                                # stable slug
    name: str
    source: tuple[str, ...] = ()           # ordered, duplicates allowed
    description: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)

    merge_strategy: ClassVar[MergeStrategy]


@dataclass(frozen=True, slots=True)
class MaxFeature(FeatureInstance):
    """Keeps the highest numeric value per payload key (e.g. darkvision range)."""
    merge_strategy: ClassVar[MergeStrategy] = "max"


@dataclass(frozen=True, slots=True)
class SumFeature(FeatureInstance):
    """Adds numeric payload values per key across sources."""
    merge_strategy: ClassVar[MergeStrategy] = "sum"


@dataclass(frozen=True, slots=True)
class SetFeature(FeatureInstance):
    """Flag feature: presence wins, later grants only add source labels."""
    merge_strategy: ClassVar[MergeStrategy] = "set"


@dataclass(frozen=True, slots=True)
class CustomFeature(FeatureInstance):
    """Caller-resolved feature. The ledger only unions its sources."""
    data: Any = None

    merge_strategy: ClassVar[MergeStrategy] = "custom"


FEATURE_VARIANTS: dict[str, type[FeatureInstance]] = {
    "max": MaxFeature,
    "sum": SumFeature,
    "set": SetFeature,
    "custom": CustomFeature,
}


def feature_from_record(raw: object) -> FeatureInstance | None:
    """Normalise a loosely-typed feature mapping into a variant.

    Returns None when the mapping lacks a string id or name. A missing or
    unrecognised ``mergeStrategy`` is treated as a flag (``set``) feature,
    and so is an instance of the bare FeatureInstance base.
    """
    if isinstance(raw, tuple(FEATURE_VARIANTS.values())):
        return raw
    if isinstance(raw, FeatureInstance):
        return SetFeature(
            id=raw.id,
            name=raw.name,
            source=tuple(raw.source),
            description=raw.description,
            payload=dict(raw.payload),
        )
    if not isinstance(raw, Mapping):
        return None
    feature_id = raw.get("id")
    name = raw.get("name")
    if not isinstance(feature_id, str) or not isinstance(name, str):
        return None

    source_value = raw.get("source")
    if isinstance(source_value, str):
        source = (source_value,)
    elif isinstance(source_value, (list, tuple)):
        source = tuple(s for s in source_value if isinstance(s, str))
    else:
        source = ()

    description = raw.get("description")
    if not isinstance(description, str):
        description = None

    payload_value = raw.get("payload")
    payload = dict(payload_value) if isinstance(payload_value, Mapping) else {}

    strategy = raw.get("mergeStrategy", raw.get("merge_strategy"))
    variant = FEATURE_VARIANTS.get(strategy, SetFeature) if isinstance(strategy, str) else SetFeature
    if variant is CustomFeature:
        return CustomFeature(
            id=feature_id,
            name=name,
            source=source,
            description=description,
            payload=payload,
            data=raw.get("data"),
        )
    return variant(
        id=feature_id,
        name=name,
        source=source,
        description=description,
        payload=payload,
    )


def feature_to_dict(feature: FeatureInstance) -> dict[str, Any]:
    """Plain-JSON rendering used by character export."""
    out: dict[str, Any] = {
        "id": feature.id,
        "name": feature.name,
        "source": list(feature.source),
        "mergeStrategy": feature.merge_strategy,
    }
    if feature.description is not None:
        out["description"] = feature.description
    if feature.payload:
        out["payload"] = dict(feature.payload)
    if isinstance(feature, CustomFeature) and feature.data is not None:
        out["data"] = feature.data
    return out
