"""
Contacts source and name index.

The contacts collaborator only has to yield ContactCard values (a name plus
phone numbers and emails). AddressBookSource reads them from the macOS
Contacts store (AddressBook-vXX.abcddb, a Core Data SQLite file with
Z-prefixed tables). The core turns cards into a NameIndex, a read-only
mapping from normalized identifier to display name.

Key normalization matches the resolver:
    - emails: lowercase
    - phones: digits only ("+1 (415) 555-1234" → "14155551234")

Access to the Contacts store needs Full Disk Access on macOS. Any failure
to read a store is logged and yields no cards; display names then degrade
to raw identifiers.
"""

import logging
import re
import sqlite3
from collections import defaultdict
from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"\D")


def digits_only(value: str) -> str:
    """Strip everything but digits."""
    return _NON_DIGIT.sub("", value)


@dataclass(frozen=True)
class ContactCard:
    """One contact as exposed by a contacts source."""

    name: str
    phones: Tuple[str, ...] = ()
    emails: Tuple[str, ...] = ()


class ContactsSource(Protocol):
    """Anything that can enumerate contact cards."""

    def fetch_cards(self) -> List[ContactCard]:
        ...


def display_name(
    first_name: Optional[str],
    last_name: Optional[str],
    organization: Optional[str] = None,
    nickname: Optional[str] = None,
) -> Optional[str]:
    """
    Build a display name: "First Last", else organization, else nickname.

    Returns:
        The name, or None if every part is blank.
    """
    full = " ".join(part.strip() for part in (first_name, last_name) if part and part.strip())
    if full:
        return full
    for fallback in (organization, nickname):
        if fallback and fallback.strip():
            return fallback.strip()
    return None


class NameIndex(Mapping[str, str]):
    """
    Read-only mapping of normalized identifier → display name.

    Keys are kept sorted so suffix scans are deterministic.
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        data = dict(entries or {})
        self._data = MappingProxyType(data)
        self._sorted_keys: Tuple[str, ...] = tuple(sorted(data))

    @classmethod
    def from_cards(cls, cards: Iterable[ContactCard]) -> "NameIndex":
        """
        Build an index from contact cards.

        Later cards overwrite earlier ones on key collision.
        """
        mapping: Dict[str, str] = {}
        for card in cards:
            if not card.name:
                continue
            for phone in card.phones:
                digits = digits_only(phone or "")
                if digits:
                    mapping[digits] = card.name
            for email in card.emails:
                normalized = (email or "").strip().lower()
                if normalized:
                    mapping[normalized] = card.name

        logger.info(f"Built name index with {len(mapping)} identifiers")
        return cls(mapping)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._sorted_keys)

    def __len__(self) -> int:
        return len(self._data)

    def sorted_keys(self) -> Tuple[str, ...]:
        """All keys in lexicographic order."""
        return self._sorted_keys


EMPTY_NAME_INDEX = NameIndex()


@dataclass
class AddressBookSource:
    """
    Contacts source backed by one or more AddressBook SQLite stores.

    macOS keeps a top-level AddressBook-vXX.abcddb plus one per account
    under Sources/<uuid>/; cards from every readable store are combined.
    """

    paths: Sequence[Path] = field(default_factory=list)

    @classmethod
    def discover(cls, directory: Path) -> "AddressBookSource":
        """Find every AddressBook store under a Contacts directory."""
        directory = Path(directory).expanduser()
        if not directory.exists():
            return cls([])
        paths = sorted(directory.glob("AddressBook-v*.abcddb"))
        paths += sorted(directory.glob("Sources/*/AddressBook-v*.abcddb"))
        return cls(paths)

    def fetch_cards(self) -> List[ContactCard]:
        """Read cards from every store; unreadable stores are skipped."""
        cards: List[ContactCard] = []
        for path in self.paths:
            try:
                cards.extend(self._read_store(Path(path)))
            except sqlite3.Error as e:
                logger.warning(f"Cannot read Contacts store {path}: {e}")
        logger.info(f"Fetched {len(cards)} contact cards from {len(self.paths)} store(s)")
        return cards

    def _read_store(self, path: Path) -> List[ContactCard]:
        uri = f"file:{path}?mode=ro"
        with closing(sqlite3.connect(uri, uri=True)) as conn:
            names = _extract_names(conn)
            phones = _extract_values(
                conn,
                """
                SELECT ZOWNER, ZFULLNUMBER
                FROM ZABCDPHONENUMBER
                WHERE ZOWNER IS NOT NULL AND ZFULLNUMBER IS NOT NULL
                ORDER BY Z_PK;
                """,
            )
            emails = _extract_values(
                conn,
                """
                SELECT ZOWNER, ZADDRESS
                FROM ZABCDEMAILADDRESS
                WHERE ZOWNER IS NOT NULL AND ZADDRESS IS NOT NULL
                ORDER BY Z_PK;
                """,
            )

        cards = []
        for pk, name in names:
            if not phones.get(pk) and not emails.get(pk):
                continue
            cards.append(
                ContactCard(
                    name=name,
                    phones=tuple(phones.get(pk, ())),
                    emails=tuple(emails.get(pk, ())),
                )
            )
        logger.debug(f"Read {len(cards)} contact cards from {path}")
        return cards


def _extract_names(conn: sqlite3.Connection) -> List[Tuple[int, str]]:
    """Read (Z_PK, display name) pairs from ZABCDRECORD."""
    query = """
        SELECT
            Z_PK,
            ZFIRSTNAME,
            ZLASTNAME,
            ZORGANIZATION,
            ZNICKNAME
        FROM ZABCDRECORD
        ORDER BY Z_PK;
    """
    names = []
    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        for pk, first_name, last_name, organization, nickname in cursor.fetchall():
            name = display_name(first_name, last_name, organization, nickname)
            if name:
                names.append((pk, name))
    return names


def _extract_values(conn: sqlite3.Connection, query: str) -> Dict[int, List[str]]:
    """Group (owner, value) rows by owner."""
    grouped: Dict[int, List[str]] = defaultdict(list)
    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        for owner, value in cursor.fetchall():
            grouped[owner].append(value)
    return grouped
