"""
Utility functions and classes for iMessage Insights.
"""

import datetime
from typing import Optional

# Apple's epoch: 2001-01-01 00:00:00 UTC, in Unix seconds
APPLE_EPOCH_OFFSET = 978307200
NANOSECONDS_PER_SECOND = 1_000_000_000


class Colors:
    """ANSI color codes for terminal output."""

    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKCYAN = "\033[96m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"
    UNDERLINE = "\033[4m"


def datetime_to_apple_ns(dt: datetime.datetime) -> int:
    """
    Convert a datetime to Apple's nanosecond timestamp.

    Naive datetimes are interpreted in the local time zone.

    Args:
        dt: datetime to convert.

    Returns:
        Nanoseconds since 2001-01-01 00:00:00 UTC.
    """
    return int((dt.timestamp() - APPLE_EPOCH_OFFSET) * NANOSECONDS_PER_SECOND)


def format_message_count(count: int) -> str:
    """
    Format message count with appropriate units.

    Args:
        count: Number of messages.

    Returns:
        Formatted string (e.g., "999" or "1.2K").
    """
    if count < 1000:
        return str(count)
    elif count < 1_000_000:
        return f"{count / 1000:.1f}K"
    else:
        return f"{count / 1_000_000:.1f}M"


def truncate(text: Optional[str], width: int) -> str:
    """Truncate text for single-line terminal display."""
    if not text:
        return ""
    return text if len(text) <= width else text[: width - 1] + "…"
