"""
Snapshot store.

All analytics are produced by one batch load and published as a single
immutable InsightsSnapshot. The store is constructed by the caller and
passed to whatever consumes it (CLI, API, charts); there is no module-level
instance.

Publishing swaps one reference under a lock, so a reader sees either the
previous snapshot or the new one, never a mix. A failed load never
publishes, leaving the previous snapshot in place.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple

from imessage_insights.aggregation import DailyCountRecord, Direction, HourlyCountRecord
from imessage_insights.readability import ReadabilityRankings, ReadabilityRecord

logger = logging.getLogger(__name__)


def _freeze(value: Any) -> Any:
    """Copy nested mappings into read-only views."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


@dataclass(frozen=True)
class InsightsSnapshot:
    """
    Everything one load produces.

    Construction copies the inputs: record lists become tuples and lookups
    become nested MappingProxyType views, so consumers cannot change a
    published snapshot.
    """

    daily_records: Tuple[DailyCountRecord, ...]
    daily_lookup: Mapping[str, Mapping[Any, Mapping[Direction, int]]]
    hourly_records: Tuple[HourlyCountRecord, ...]
    hourly_lookup: Mapping[str, Mapping[Any, Mapping[Direction, int]]]
    readability_records: Tuple[ReadabilityRecord, ...]
    readability_lookup: Mapping[str, Mapping[Direction, ReadabilityRecord]]
    rankings: ReadabilityRankings
    source_path: Optional[str] = None
    loaded_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        for name in ("daily_records", "hourly_records", "readability_records"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        for name in ("daily_lookup", "hourly_lookup", "readability_lookup"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    @property
    def people(self) -> List[str]:
        """Every person with daily counts, sorted."""
        return sorted(self.daily_lookup)

    @property
    def total_messages(self) -> int:
        """Sum of all daily counts (group chats count once per participant)."""
        return sum(record.count for record in self.daily_records)


class InsightsStore:
    """Holds the most recently published snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[InsightsSnapshot] = None
        self._generation = 0

    @property
    def snapshot(self) -> Optional[InsightsSnapshot]:
        """The current snapshot, or None before the first successful load."""
        return self._snapshot

    @property
    def generation(self) -> int:
        """Number of snapshots published so far."""
        return self._generation

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def publish(self, snapshot: InsightsSnapshot) -> None:
        """Atomically replace the current snapshot."""
        with self._lock:
            self._snapshot = snapshot
            self._generation += 1
        logger.info(
            f"Published snapshot #{self._generation}: "
            f"{len(snapshot.daily_lookup)} people, "
            f"{len(snapshot.readability_records)} readability records"
        )

    def require(self) -> InsightsSnapshot:
        """
        Get the current snapshot.

        Raises:
            RuntimeError: If nothing has been loaded yet.
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise RuntimeError("No snapshot loaded yet")
        return snapshot
