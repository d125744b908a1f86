#!/usr/bin/env python3
"""
Main entry point for iMessage Insights.

Provides a command-line interface with two commands:
    report  Load chat.db once and print counts and readability rankings.
    serve   Load chat.db in the background and serve the read-only API.
"""
from typing import List, Optional
import argparse
import sys
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait

from imessage_insights.aggregation import Direction, Measure, top_people, totals_from_lookup
from imessage_insights.config import Config, get_config
from imessage_insights.contacts import AddressBookSource
from imessage_insights.logger_config import setup_logging
from imessage_insights.pipeline import refresh_in_background, run_load
from imessage_insights.readability import DirectionRankings
from imessage_insights.resolver import HandleResolver, load_name_index_async
from imessage_insights.store import InsightsStore
from imessage_insights.utils import Colors, format_message_count, truncate

logger = logging.getLogger(__name__)


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{title}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Conversation analytics over a local iMessage chat.db (read-only)."
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to chat.db (defaults to ./chat.db or ~/Library/Messages/chat.db).",
    )
    parser.add_argument(
        "--contacts-db-path",
        default=None,
        help="Path to an AddressBook-vXX.abcddb file for display names.",
    )
    parser.add_argument(
        "--use-memory",
        action="store_true",
        help="Load the DB into RAM (SQLite :memory:) before running analysis.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file (rotated).",
    )
    parser.add_argument(
        "--debug-unmatched",
        action="store_true",
        help="Log every handle that no contact matched (resolver DEBUG output).",
    )
    subparsers = parser.add_subparsers(dest="command")

    report = subparsers.add_parser("report", help="Print counts and readability rankings.")
    report.add_argument(
        "--top",
        type=int,
        default=None,
        help="How many people to list (default: 10).",
    )
    report.add_argument(
        "--plot-html",
        default=None,
        help="Write smoothed daily and hourly charts to this HTML file.",
    )

    serve = subparsers.add_parser("serve", help="Serve the read-only API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "report"
        args.top = None
        args.plot_html = None
    return args


def _contacts_source(config: Config) -> Optional[AddressBookSource]:
    """
    Pick the AddressBook stores to read.

    An explicit or environment path is used alone. Otherwise every store
    under the default Contacts directory is read, including the per-account
    ones in Sources/.
    """
    if config.contacts_path_given:
        if not config.validate_contacts():
            return None
        return AddressBookSource([config.contacts_db_path])

    source = AddressBookSource.discover(config.DEFAULT_CONTACTS_PATH)
    return source if source.paths else None


def _start_contacts(config: Config, resolver: HandleResolver) -> Optional[Future]:
    """Kick off the contacts index build; resolution degrades to raw handles until done."""
    source = _contacts_source(config)
    if source is None:
        logger.info("No readable Contacts database; showing raw handles")
        return None
    return load_name_index_async(source, resolver)


def _print_rankings(title: str, rankings: DirectionRankings, resolver: HandleResolver) -> None:
    print(f"\n{Colors.BOLD}{title}{Colors.ENDC}")
    for label, records in (
        ("Highest grade level", rankings.top),
        ("Lowest grade level", rankings.bottom),
        ("Most words", rankings.most_prolific),
    ):
        print(f"  {label}:")
        if not records:
            print("    (none)")
        for i, record in enumerate(records, 1):
            name = truncate(resolver.resolve(record.person), 30)
            print(f"    {i:2d}. {name:30s} grade {record.score:6.2f}  ({record.words:,} words)")


def run_report(config: Config, args: argparse.Namespace) -> int:
    """Load once and print the report. Returns the exit code."""
    resolver = HandleResolver()
    contacts_future = _start_contacts(config, resolver)

    store = InsightsStore()
    result = run_load(config, store, use_memory=args.use_memory)
    if not result.success:
        print(f"{Colors.FAIL}Error: {result.error}{Colors.ENDC}")
        return 1

    if contacts_future is not None:
        wait([contacts_future])

    snapshot = store.require()
    limit = args.top or config.top_people_n

    print_section("Summary")
    print(f"Database: {snapshot.source_path}")
    print(f"People: {len(snapshot.daily_lookup):,}")
    print(f"Messages (per participant): {snapshot.total_messages:,}")
    if result.rows_skipped:
        print(f"{Colors.WARNING}Skipped rows: {result.rows_skipped:,}{Colors.ENDC}")

    print_section(f"Top {limit} People by Message Count")
    totals = totals_from_lookup(snapshot.daily_lookup)
    for i, (person, total) in enumerate(top_people(snapshot.daily_lookup, Measure.TOTAL, limit), 1):
        name = truncate(resolver.resolve(person), 30)
        received = format_message_count(totals[person][Direction.INCOMING])
        sent = format_message_count(totals[person][Direction.OUTGOING])
        print(f"{i:2d}. {name:30s}: {total:>8,} ({received} in / {sent} out)")

    print_section("Readability (Flesch-Kincaid grade level)")
    _print_rankings("Messages you received", snapshot.rankings.incoming, resolver)
    _print_rankings("Messages you sent", snapshot.rankings.outgoing, resolver)

    if args.plot_html:
        # Imported here so plain reports don't pay for plotly's import time
        from imessage_insights.visualization import build_daily_figure, build_hourly_figure, write_html

        daily = build_daily_figure(snapshot, resolver, limit=limit, alpha=config.smoothing_alpha)
        hourly = build_hourly_figure(snapshot, resolver, limit=limit)
        path = write_html(daily, args.plot_html)
        write_html(hourly, path.with_name(f"{path.stem}_hourly{path.suffix}"))
        print(f"\n{Colors.OKGREEN}Charts written to {path}{Colors.ENDC}")

    return 0


def run_server(config: Config, args: argparse.Namespace) -> int:
    """Serve the API; the first snapshot is loaded in the background."""
    import uvicorn

    from imessage_insights.api import create_app

    resolver = HandleResolver()
    _start_contacts(config, resolver)

    store = InsightsStore()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="archive-load")
    refresh_in_background(config, store, executor, use_memory=args.use_memory)

    app = create_app(store, resolver)
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        executor.shutdown(wait=False)
    return 0


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    setup_logging(
        log_file=args.log_file,
        debug_loggers=["imessage_insights.resolver"] if args.debug_unmatched else None,
    )

    # Get configuration
    config = get_config(db_path=args.db_path, contacts_db_path=args.contacts_db_path)

    if not config.validate():
        print(f"{Colors.FAIL}Error: Database file not found or not readable.{Colors.ENDC}")
        print(f"Please ensure chat.db exists in the current directory or at:")
        print(f"  {config.DEFAULT_MESSAGES_PATH / config.DEFAULT_DB_NAME}")
        sys.exit(1)

    print(f"{Colors.OKGREEN}Using database: {config.db_path_str}{Colors.ENDC}")

    if args.command == "serve":
        sys.exit(run_server(config, args))
    sys.exit(run_report(config, args))


if __name__ == '__main__':
    main()
