"""Merge feature contributions into one entry per feature id.

Contributions arrive in precedence order (ancestry, background, class
levels, feats). The first instance for an id is kept as-is; later ones
append their source labels and combine payloads according to the
*incoming* instance's merge strategy.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from charplanner.models.feature import (
    CustomFeature,
    FeatureInstance,
    MaxFeature,
    SetFeature,
    SumFeature,
)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _combine_payload(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    combine,
) -> dict[str, Any]:
    merged = dict(existing)
    for key, value in incoming.items():
        current = merged.get(key)
        if key in merged and _is_number(current) and _is_number(value):
            merged[key] = combine(current, value)
        else:
            merged[key] = value
    return merged


def merge_pair(existing: FeatureInstance, incoming: FeatureInstance) -> FeatureInstance:
    """Fold *incoming* into *existing* (same id). Returns a new instance."""
    if isinstance(incoming, MaxFeature):
        payload = _combine_payload(existing.payload, incoming.payload, max)
    elif isinstance(incoming, SumFeature):
        payload = _combine_payload(existing.payload, incoming.payload, lambda a, b: a + b)
    elif isinstance(incoming, (SetFeature, CustomFeature)):
        payload = dict(existing.payload)
    else:
        raise TypeError(f"Unknown feature variant: {type(incoming).__name__}")
    return replace(
        existing,
        source=tuple(existing.source) + tuple(incoming.source),
        description=existing.description if existing.description is not None else incoming.description,
        payload=payload,
    )


class FeatureLedger:
    """Accumulates feature contributions keyed by id, first-seen order."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, FeatureInstance] = {}

    def add(self, feature: FeatureInstance) -> None:
        if not isinstance(feature, (MaxFeature, SumFeature, SetFeature, CustomFeature)):
            raise TypeError(f"Expected a FeatureInstance variant, got {feature!r}")
        existing = self._entries.get(feature.id)
        if existing is None:
            self._entries[feature.id] = feature
        else:
            self._entries[feature.id] = merge_pair(existing, feature)

    def extend(self, features: Iterable[FeatureInstance]) -> None:
        for feature in features:
            self.add(feature)

    def features(self) -> list[FeatureInstance]:
        return list(self._entries.values())

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def merge_features(features: Iterable[FeatureInstance]) -> list[FeatureInstance]:
    """One-shot merge of an ordered contribution sequence."""
    ledger = FeatureLedger()
    ledger.extend(features)
    return ledger.features()
