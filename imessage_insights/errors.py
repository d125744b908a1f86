"""
Error taxonomy for iMessage Insights.

Exception Hierarchy:
    InsightsError (base)
    ├── ArchiveError - the message archive cannot be used for a load
    │   ├── ArchiveNotFound - chat.db is absent
    │   └── ArchiveUnreadable - permissions, corruption, missing tables
    └── RowDecodeError - a single row is malformed (recovered per row)

Archive errors are fatal to a load; the previously published snapshot is
kept. RowDecodeError never escapes a load: the offending row is skipped.

Empty/attachment-only bodies and unmatched handles are not errors.
"""

from pathlib import Path
from typing import Any, Optional, Union


class InsightsError(Exception):
    """Base class for all iMessage Insights errors."""


class ArchiveError(InsightsError):
    """Raised when the message archive cannot be loaded."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class ArchiveNotFound(ArchiveError):
    """The archive file does not exist."""


class ArchiveUnreadable(ArchiveError):
    """The archive exists but cannot be opened or queried."""


class RowDecodeError(InsightsError):
    """
    A row's columns do not match the expected types, or a message body
    blob could not be decoded by either archive decoder.
    """

    def __init__(self, message: str, row: Any = None):
        super().__init__(message)
        self.row = row
