"""
Message body extraction.

Chooses the usable text of a message row:

    1. message.text, when present and non-empty
    2. the decoded attributedBody blob
    3. attachment-only rows are skipped
    4. anything else is skipped

and strips hyperlinks, which add words and syllables without saying
anything about how someone writes.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from imessage_insights.aggregation import Direction
from imessage_insights.attributed_body import decode_attributed_body
from imessage_insights.errors import RowDecodeError

logger = logging.getLogger(__name__)

_HOST = (
    r"[a-z0-9](?:[a-z0-9-]*[a-z0-9])?"
    r"(?:\.[a-z0-9](?:[a-z0-9-]*[a-z0-9])?)*"
    r"\.(?:com|org|net|edu|gov|io|co|me|ly|app|dev|us|uk)"
)

# Links never end in sentence punctuation; a trailing ".,!?)" stays in the text.
URL_PATTERN = re.compile(
    rf"""
    (?i:https?://|ftp://|www\.|mailto:)\S*[^\s.,!?)]             # scheme, www or mailto
    | [\w.+-]+@[\w-]+(?:\.[\w-]+)+                               # email address
    | \b(?i:{_HOST})/(?:\S*[^\s.,!?)])?                          # host of any case with a path
    | \b{_HOST}\b                                                # lowercase bare host
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class BodyRow:
    """One candidate row from queries.message_bodies()."""

    person: str
    direction: Direction
    text: Optional[str]
    attributed_body: Optional[bytes]
    has_attachments: bool

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "BodyRow":
        """
        Validate a raw (person, flag, text, blob, has_attachments) row.

        Raises:
            RowDecodeError: If any column has an unexpected type.
        """
        try:
            person, flag, text, blob, has_attachments = row
        except (TypeError, ValueError) as e:
            raise RowDecodeError(f"Unexpected body row shape: {e}", row=row) from e

        if not isinstance(person, str) or not person:
            raise RowDecodeError(f"Invalid person identifier: {person!r}", row=row)
        if text is not None and not isinstance(text, str):
            raise RowDecodeError(f"text is not a string: {type(text).__name__}", row=row)
        if blob is not None and not isinstance(blob, (bytes, bytearray, memoryview)):
            raise RowDecodeError(f"attributedBody is not binary: {type(blob).__name__}", row=row)

        return cls(
            person=person,
            direction=Direction.from_flag(flag),
            text=text,
            attributed_body=bytes(blob) if blob is not None else None,
            has_attachments=bool(has_attachments),
        )


def strip_urls(text: str) -> str:
    """Remove hyperlinks from text."""
    return URL_PATTERN.sub("", text)


def extract_text(row: BodyRow) -> Optional[str]:
    """
    Resolve the scorable text of a body row.

    Args:
        row: A validated body row.

    Returns:
        Text with URLs removed, or None when the row has no usable content
        (attachment-only, empty, or no body at all).

    Raises:
        RowDecodeError: If the row relies on an attributedBody blob that
            neither archive decoder can read.
    """
    if row.text:
        content = row.text
    elif row.attributed_body is not None:
        content = decode_attributed_body(row.attributed_body)
    elif row.has_attachments:
        return None
    else:
        return None

    if not content:
        return None

    return strip_urls(content)
