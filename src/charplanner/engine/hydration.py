"""Async record hydration for BuildState.

A state may carry an ancestry or background id without the matching
record (e.g. after BuildState.from_dict). BuilderHydrator fetches the
record lists, caches them in a RecordCache it owns, and returns a new
state with the records filled in. The rules engine never sees any of
this; it only reads whatever records the state already holds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from charplanner.engine.build_engine import BuildState
from charplanner.models.records import AncestryRecord, BackgroundRecord
from charplanner.parser.record_parser import parse_ancestry, parse_background

logger = logging.getLogger(__name__)

Record = AncestryRecord | BackgroundRecord
Fetcher = Callable[[], Awaitable[Sequence[Any]]]


class RecordCache:
    """Per-kind record lists keyed by id. One instance per hydrator."""

    __slots__ = ("_records",)

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Record]] = {}

    def has(self, kind: str) -> bool:
        return kind in self._records

    def get(self, kind: str, record_id: str) -> Record | None:
        return self._records.get(kind, {}).get(record_id)

    def ids(self, kind: str) -> list[str]:
        return list(self._records.get(kind, {}))

    def store(self, kind: str, records: Sequence[Record]) -> None:
        self._records[kind] = {record.id: record for record in records}

    def invalidate(self, kind: str | None = None) -> None:
        """Drop one kind (or every kind) so the next hydrate refetches."""
        if kind is None:
            self._records.clear()
        else:
            self._records.pop(kind, None)

    def reset(self) -> None:
        self._records.clear()


@dataclass(frozen=True, slots=True)
class KindStatus:
    loading: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class HydrationStatus:
    ancestry: KindStatus = KindStatus()
    background: KindStatus = KindStatus()


def _needs(record_id: str | None, record: Record | None) -> bool:
    return bool(record_id) and (record is None or record.id != record_id)


class BuilderHydrator:
    """Fills BuildState.ancestry / .background from async fetchers.

    Fetchers return the full list of records for their kind, either as
    parsed records or raw compendium mappings.
    """

    __slots__ = ("_fetchers", "_parsers", "cache", "_status")

    def __init__(
        self,
        fetch_ancestries: Fetcher,
        fetch_backgrounds: Fetcher,
        cache: RecordCache | None = None,
    ) -> None:
        self._fetchers: dict[str, Fetcher] = {
            "ancestry": fetch_ancestries,
            "background": fetch_backgrounds,
        }
        self._parsers: dict[str, Callable[[Mapping[str, Any]], Record]] = {
            "ancestry": parse_ancestry,
            "background": parse_background,
        }
        self.cache = cache if cache is not None else RecordCache()
        self._status = HydrationStatus()

    @property
    def status(self) -> HydrationStatus:
        return self._status

    def _set_status(self, kind: str, **changes: Any) -> None:
        current: KindStatus = getattr(self._status, kind)
        self._status = replace(self._status, **{kind: replace(current, **changes)})

    def _coerce(self, kind: str, rows: Sequence[Any]) -> list[Record]:
        records: list[Record] = []
        parse = self._parsers[kind]
        for row in rows:
            if isinstance(row, (AncestryRecord, BackgroundRecord)):
                records.append(row)
            elif isinstance(row, Mapping):
                records.append(parse(row))
        return records

    async def load(self, kind: str, record_id: str) -> Record | None:
        """Record for *record_id*, fetching the kind's list on a cache miss.

        Fetch errors are logged and recorded in ``status``; the return is
        then None. Cancellation propagates.
        """
        if self.cache.has(kind):
            return self.cache.get(kind, record_id)

        self._set_status(kind, loading=True, error=None)
        try:
            rows = await self._fetchers[kind]()
            self.cache.store(kind, self._coerce(kind, rows))
        except asyncio.CancelledError:
            logger.debug("Fetch of %s records cancelled", kind)
            raise
        except Exception as exc:
            logger.error("Failed to load %s records: %s", kind, exc)
            self._set_status(kind, error=str(exc) or f"Failed to load {kind} records")
            return None
        finally:
            self._set_status(kind, loading=False)

        record = self.cache.get(kind, record_id)
        if record is None:
            logger.warning("No %s record with id %r", kind, record_id)
        return record

    async def _maybe_load(self, kind: str, record_id: str | None, current: Record | None) -> Record | None:
        if not _needs(record_id, current):
            return None
        return await self.load(kind, record_id)

    async def hydrate(self, state: BuildState) -> BuildState:
        """Return *state* with missing or stale records filled in.

        Ancestry and background are fetched concurrently. A field is only
        replaced when its record was found; anything else leaves it as is.
        """
        ancestry, background = await asyncio.gather(
            self._maybe_load("ancestry", state.ancestry_id, state.ancestry),
            self._maybe_load("background", state.background_id, state.background),
        )
        hydrated = state
        if isinstance(ancestry, AncestryRecord):
            hydrated = hydrated.with_ancestry(ancestry)
        if isinstance(background, BackgroundRecord):
            hydrated = hydrated.with_background(background)
        return hydrated
