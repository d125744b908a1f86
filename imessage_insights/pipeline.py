"""
Batch load orchestration.

One load reads the archive sequentially over a single read-only
connection and publishes one snapshot:

    1. Open chat.db read-only (ArchiveNotFound / ArchiveUnreadable are fatal)
    2. Daily counts   → records + person → day → direction lookup
    3. Hourly counts  → records + person → hour → direction lookup
    4. Message bodies → readability records, lookup and rankings
    5. Publish the snapshot to the store

Daily sums are cross-checked against unbucketed per-person counts; a
mismatch is logged, not fatal.

Malformed rows (RowDecodeError) are skipped and counted; they never fail a
load. A failed load publishes nothing, so the store keeps its previous
snapshot. Nothing is retried automatically.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from imessage_insights.aggregation import (
    DailyLookup,
    Direction,
    build_daily_counts,
    build_hourly_counts,
    totals_from_lookup,
)
from imessage_insights.config import Config
from imessage_insights.content import BodyRow, extract_text
from imessage_insights.database import ArchiveReader
from imessage_insights.errors import ArchiveError, RowDecodeError
from imessage_insights.queries import (
    daily_message_counts,
    hourly_message_counts,
    message_bodies,
    message_totals_by_person,
)
from imessage_insights.readability import (
    ReadabilityAccumulator,
    ReadabilityRecord,
    build_readability_lookup,
    compute_rankings,
)
from imessage_insights.store import InsightsSnapshot, InsightsStore

logger = logging.getLogger(__name__)


@dataclass
class BodyScanStats:
    """What happened to the message-body rows of one load."""

    rows_read: int = 0
    rows_scored: int = 0
    rows_without_content: int = 0
    rows_skipped: int = 0


@dataclass
class LoadResult:
    """Result of a load."""

    success: bool
    daily_records: int = 0
    hourly_records: int = 0
    people: int = 0
    readability_records: int = 0
    body_rows_read: int = 0
    body_rows_scored: int = 0
    rows_skipped: int = 0
    source_path: Optional[Path] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        if not self.success:
            return f"Load FAILED ({self.error_type}): {self.error}"
        return (
            f"Load SUCCESS from {self.source_path}\n"
            f"  Counts: {self.daily_records} daily, {self.hourly_records} hourly records "
            f"for {self.people} people\n"
            f"  Readability: {self.readability_records} records from "
            f"{self.body_rows_scored}/{self.body_rows_read} body rows\n"
            f"  Skipped rows: {self.rows_skipped}\n"
            f"  Duration: {self.duration_seconds:.2f}s"
        )


def scan_message_bodies(reader: ArchiveReader) -> Tuple[List[ReadabilityRecord], BodyScanStats]:
    """
    Extract, clean and score every message body.

    Args:
        reader: Connected archive reader.

    Returns:
        (readability records, scan statistics).
    """
    accumulator = ReadabilityAccumulator()
    stats = BodyScanStats()

    for raw in reader.execute_query(message_bodies()):
        stats.rows_read += 1
        try:
            row = BodyRow.from_row(raw)
            text = extract_text(row)
        except RowDecodeError as e:
            stats.rows_skipped += 1
            logger.debug(f"Skipping undecodable body row: {e}")
            continue

        if text is None:
            stats.rows_without_content += 1
            continue

        accumulator.add(row.person, row.direction, text)
        stats.rows_scored += 1

    records = accumulator.records()
    logger.info(
        f"Scored {stats.rows_scored} of {stats.rows_read} body rows into "
        f"{len(records)} readability records ({stats.rows_skipped} undecodable)"
    )
    return records, stats


def check_daily_totals(reader: ArchiveReader, daily_lookup: DailyLookup) -> List[str]:
    """
    Compare per-person daily sums against unbucketed per-person counts.

    Returns:
        People whose totals disagree (logged as warnings).
    """
    expected: Dict[Tuple[str, Direction], int] = {}
    for person, flag, count in reader.execute_query(message_totals_by_person()):
        try:
            expected[(person, Direction.from_flag(flag))] = count
        except RowDecodeError as e:
            logger.debug(f"Ignoring total row for {person!r}: {e}")

    mismatched = []
    bucketed = totals_from_lookup(daily_lookup)
    for person in sorted({person for person, _ in expected} | set(bucketed)):
        for direction in Direction:
            raw = expected.get((person, direction), 0)
            summed = bucketed.get(person, {}).get(direction, 0)
            if raw != summed:
                logger.warning(
                    f"Daily totals for {person!r} {direction.value} disagree: "
                    f"{summed} bucketed vs {raw} raw"
                )
                mismatched.append(person)
                break
    return mismatched


def load_snapshot(reader: ArchiveReader, config: Config) -> Tuple[InsightsSnapshot, LoadResult]:
    """
    Run every query over a connected reader and build a snapshot.

    Raises:
        ArchiveUnreadable: If a query fails.
    """
    logger.info("Step 1: Aggregating daily counts...")
    daily_rows = reader.execute_query(daily_message_counts())
    daily_records, daily_lookup = build_daily_counts(daily_rows)
    check_daily_totals(reader, daily_lookup)

    logger.info("Step 2: Aggregating hourly counts...")
    hourly_rows = reader.execute_query(hourly_message_counts())
    hourly_records, hourly_lookup = build_hourly_counts(hourly_rows)

    logger.info("Step 3: Scoring readability...")
    readability_records, body_stats = scan_message_bodies(reader)
    rankings = compute_rankings(
        readability_records,
        min_words=config.readability_min_words,
        top_n=config.readability_top_n,
        prolific_n=config.readability_prolific_n,
    )

    snapshot = InsightsSnapshot(
        daily_records=daily_records,
        daily_lookup=daily_lookup,
        hourly_records=hourly_records,
        hourly_lookup=hourly_lookup,
        readability_records=readability_records,
        readability_lookup=build_readability_lookup(readability_records),
        rankings=rankings,
        source_path=str(reader.path),
    )

    aggregation_skipped = (len(daily_rows) - len(daily_records)) + (
        len(hourly_rows) - len(hourly_records)
    )
    result = LoadResult(
        success=True,
        daily_records=len(daily_records),
        hourly_records=len(hourly_records),
        people=len(daily_lookup),
        readability_records=len(readability_records),
        body_rows_read=body_stats.rows_read,
        body_rows_scored=body_stats.rows_scored,
        rows_skipped=aggregation_skipped + body_stats.rows_skipped,
        source_path=reader.path,
    )
    return snapshot, result


def run_load(config: Config, store: InsightsStore, *, use_memory: bool = False) -> LoadResult:
    """
    Load the archive and publish the snapshot to `store`.

    Archive errors are reported in the result (success=False) and logged;
    the store is left untouched.

    Args:
        config: Configuration with the archive path and ranking constants.
        store: Store to publish into.
        use_memory: Copy the archive into memory before querying.

    Returns:
        LoadResult describing the load.
    """
    start_time = datetime.now()
    try:
        with ArchiveReader(config, use_memory=use_memory) as reader:
            snapshot, result = load_snapshot(reader, config)
    except ArchiveError as e:
        duration = (datetime.now() - start_time).total_seconds()
        logger.error(f"Load failed: {e}")
        return LoadResult(
            success=False,
            source_path=config.db_path,
            error=str(e),
            error_type=type(e).__name__,
            duration_seconds=duration,
        )

    store.publish(snapshot)
    result.duration_seconds = (datetime.now() - start_time).total_seconds()
    logger.info(f"Load completed successfully in {result.duration_seconds:.2f}s")
    return result


def refresh_in_background(
    config: Config,
    store: InsightsStore,
    executor: Optional[Executor] = None,
    *,
    use_memory: bool = False,
) -> "Future[LoadResult]":
    """
    Run run_load() on a worker thread.

    Args:
        config: Configuration for the load.
        store: Store to publish into.
        executor: Executor to use; a one-off single-thread pool if None.
        use_memory: Copy the archive into memory before querying.

    Returns:
        Future resolving to the LoadResult.
    """
    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="archive-load")
    future = pool.submit(run_load, config, store, use_memory=use_memory)
    if own_executor:
        pool.shutdown(wait=False)
    return future
