"""
Message count aggregation.

Turns the grouped rows of the daily and hourly count queries into:
    1. a flat, ordered list of records, and
    2. a nested lookup  person → bucket → direction → count

The lookup's innermost dict always holds both directions (a direction with
no messages in that bucket is 0). Zero-count buckets are never synthesized
at the person → bucket level; gap filling is the smoother's job.

Also provides the derived views the reports and charts use: per-measure
series, dense hourly profiles, per-person totals and top-people rankings.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from imessage_insights.errors import RowDecodeError

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    """Direction of a message relative to the archive owner."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"

    @classmethod
    def from_flag(cls, flag: Any) -> "Direction":
        """
        Map the archive's is_from_me flag: 1 → outgoing, 0 → incoming.

        Raises:
            RowDecodeError: If the flag is not 0 or 1.
        """
        if isinstance(flag, bool) or not isinstance(flag, int) or flag not in (0, 1):
            raise RowDecodeError(f"Invalid direction flag: {flag!r}")
        return cls.OUTGOING if flag == 1 else cls.INCOMING


class Measure(str, Enum):
    """Which quantity a series reports for each bucket."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"
    TOTAL = "total"
    NET_INCOMING = "net_incoming"
    NET_OUTGOING = "net_outgoing"


@dataclass(frozen=True)
class DailyCountRecord:
    """Messages exchanged with one person on one local calendar day."""

    person: str
    day: date
    direction: Direction
    count: int


@dataclass(frozen=True)
class HourlyCountRecord:
    """Messages exchanged with one person in one local hour of day (0-23)."""

    person: str
    hour: int
    direction: Direction
    count: int


DirectionCounts = Dict[Direction, int]
DailyLookup = Dict[str, Dict[date, DirectionCounts]]
HourlyLookup = Dict[str, Dict[int, DirectionCounts]]


def _empty_counts() -> DirectionCounts:
    return {Direction.INCOMING: 0, Direction.OUTGOING: 0}


def _require_person(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise RowDecodeError(f"Invalid person identifier: {value!r}")
    return value


def _require_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise RowDecodeError(f"Invalid count: {value!r}")
    return value


def _parse_day(value: Any) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise RowDecodeError(f"Invalid day: {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise RowDecodeError(f"Invalid day: {value!r}") from e


def _parse_hour(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 23:
        raise RowDecodeError(f"Invalid hour: {value!r}")
    return value


def _insert(lookup: Dict[Any, Dict[Any, DirectionCounts]], person: str, bucket: Any,
            direction: Direction, count: int) -> None:
    counts = lookup.setdefault(person, {}).setdefault(bucket, _empty_counts())
    if counts[direction]:
        # GROUP BY makes this impossible for a well-formed query
        logger.warning(
            f"Duplicate bucket for {person!r} {bucket} {direction.value}; "
            f"replacing {counts[direction]} with {count}"
        )
    counts[direction] = count


def build_daily_counts(
    rows: Iterable[Sequence[Any]],
) -> Tuple[List[DailyCountRecord], DailyLookup]:
    """
    Shape (person, day, direction_flag, count) rows into records and a lookup.

    Malformed rows are skipped with a warning.

    Args:
        rows: Result rows of queries.daily_message_counts().

    Returns:
        (records in input order, person → day → direction → count).
    """
    records: List[DailyCountRecord] = []
    lookup: DailyLookup = {}
    skipped = 0

    for row in rows:
        try:
            person, day_value, flag, count_value = row
            record = DailyCountRecord(
                person=_require_person(person),
                day=_parse_day(day_value),
                direction=Direction.from_flag(flag),
                count=_require_count(count_value),
            )
        except (RowDecodeError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning(f"Skipping malformed daily row {row!r}: {e}")
            continue

        records.append(record)
        _insert(lookup, record.person, record.day, record.direction, record.count)

    logger.info(
        f"Aggregated {len(records)} daily records for {len(lookup)} people"
        + (f" ({skipped} rows skipped)" if skipped else "")
    )
    return records, lookup


def build_hourly_counts(
    rows: Iterable[Sequence[Any]],
) -> Tuple[List[HourlyCountRecord], HourlyLookup]:
    """
    Shape (person, hour, direction_flag, count) rows into records and a lookup.

    Malformed rows are skipped with a warning.

    Args:
        rows: Result rows of queries.hourly_message_counts().

    Returns:
        (records in input order, person → hour → direction → count).
    """
    records: List[HourlyCountRecord] = []
    lookup: HourlyLookup = {}
    skipped = 0

    for row in rows:
        try:
            person, hour_value, flag, count_value = row
            record = HourlyCountRecord(
                person=_require_person(person),
                hour=_parse_hour(hour_value),
                direction=Direction.from_flag(flag),
                count=_require_count(count_value),
            )
        except (RowDecodeError, ValueError, TypeError) as e:
            skipped += 1
            logger.warning(f"Skipping malformed hourly row {row!r}: {e}")
            continue

        records.append(record)
        _insert(lookup, record.person, record.hour, record.direction, record.count)

    logger.info(
        f"Aggregated {len(records)} hourly records for {len(lookup)} people"
        + (f" ({skipped} rows skipped)" if skipped else "")
    )
    return records, lookup


def measure_value(counts: Mapping[Direction, int], measure: Measure) -> int:
    """
    Compute a measure from one bucket's direction counts.

    Args:
        counts: direction → count for a single bucket.
        measure: Which quantity to report.

    Returns:
        The measure's value (net measures may be negative).
    """
    incoming = counts.get(Direction.INCOMING, 0)
    outgoing = counts.get(Direction.OUTGOING, 0)
    if measure is Measure.INCOMING:
        return incoming
    if measure is Measure.OUTGOING:
        return outgoing
    if measure is Measure.TOTAL:
        return incoming + outgoing
    if measure is Measure.NET_INCOMING:
        return incoming - outgoing
    return outgoing - incoming


def daily_series(
    lookup: Mapping[str, Mapping[date, Mapping[Direction, int]]],
    person: str,
    measure: Measure = Measure.TOTAL,
) -> List[Tuple[date, int]]:
    """
    Get a person's time-ordered (day, value) series for a measure.

    Only days present in the lookup are returned; use smoothing.smooth() to
    gap-fill.
    """
    days = lookup.get(person, {})
    return [(day, measure_value(days[day], measure)) for day in sorted(days)]


def hourly_profile(
    lookup: Mapping[str, Mapping[int, Mapping[Direction, int]]],
    person: str,
    measure: Measure = Measure.TOTAL,
) -> List[Tuple[int, int]]:
    """Get a person's dense 24-point (hour, value) profile, zeros included."""
    hours = lookup.get(person, {})
    return [(hour, measure_value(hours.get(hour, _empty_counts()), measure)) for hour in range(24)]


def person_totals(
    records: Iterable[Any],
) -> Dict[str, DirectionCounts]:
    """
    Sum record counts per person and direction.

    Works for both DailyCountRecord and HourlyCountRecord lists.
    """
    totals: Dict[str, DirectionCounts] = defaultdict(_empty_counts)
    for record in records:
        totals[record.person][record.direction] += record.count
    return dict(totals)


def totals_from_lookup(lookup: Mapping[str, Mapping[Any, Mapping[Direction, int]]]) -> Dict[str, DirectionCounts]:
    """Sum a nested lookup back into per-person direction totals."""
    totals: Dict[str, DirectionCounts] = {}
    for person, buckets in lookup.items():
        person_total = _empty_counts()
        for counts in buckets.values():
            for direction, count in counts.items():
                person_total[direction] += count
        totals[person] = person_total
    return totals


def top_people(
    lookup: Mapping[str, Mapping[Any, Mapping[Direction, int]]],
    measure: Measure = Measure.TOTAL,
    limit: Optional[int] = 10,
) -> List[Tuple[str, int]]:
    """
    Rank people by their summed measure across all buckets, descending.

    Ties keep lookup order.

    Args:
        lookup: Daily or hourly lookup.
        measure: Quantity to sum per bucket.
        limit: Maximum entries to return; None for all.

    Returns:
        List of (person, total) tuples.
    """
    ranked = sorted(
        (
            (person, sum(measure_value(counts, measure) for counts in buckets.values()))
            for person, buckets in lookup.items()
        ),
        key=lambda item: item[1],
        reverse=True,
    )
    return ranked if limit is None else ranked[:limit]
