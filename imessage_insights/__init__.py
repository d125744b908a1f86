"""
iMessage Insights - conversation analytics over a local macOS chat.db.

This package provides functionality to:
- Read the Messages archive read-only and aggregate counts per person
- Score message readability (Flesch-Kincaid grade level)
- Resolve raw handles to contact names
- Smooth daily series for charts
"""

__version__ = "0.2.0"

from imessage_insights.config import get_config, Config
from imessage_insights.database import ArchiveReader
from imessage_insights.errors import ArchiveNotFound, ArchiveUnreadable, InsightsError, RowDecodeError
from imessage_insights.pipeline import LoadResult, refresh_in_background, run_load
from imessage_insights.resolver import HandleResolver
from imessage_insights.smoothing import smooth
from imessage_insights.store import InsightsSnapshot, InsightsStore

__all__ = [
    "get_config",
    "Config",
    "ArchiveReader",
    "InsightsError",
    "ArchiveNotFound",
    "ArchiveUnreadable",
    "RowDecodeError",
    "LoadResult",
    "run_load",
    "refresh_in_background",
    "HandleResolver",
    "smooth",
    "InsightsSnapshot",
    "InsightsStore",
]
