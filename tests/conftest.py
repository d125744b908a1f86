"""
Pytest fixtures for iMessage Insights tests.

This module provides shared fixtures for testing the load pipeline,
including sample databases with test data.

Fixture Categories:
    1. Database fixtures (sample chat.db, empty chat.db, sample AddressBook)
    2. Blob builders (keyed-archive and typedstream attributedBody values)
    3. Real database fixtures (optional, for integration tests)

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - Sample chat.db mimics Apple's schema structure
    - Timestamps are local noon (one at 09:00), so day and hour buckets do
      not depend on the time zone the tests run in
    - Real chat.db fixtures are skipped if not available

Sample chat.db contents (SAMPLE_* constants below):

    people:  JOHN (+14155551234), JANE (jane.smith@acme.com),
             STRANGER (+15550001111, not in contacts)
    chats:   1 = John, 2 = Jane, 3 = group of John + Jane
    days:    DAY_ONE (2024-01-15) and DAY_TWO (2024-01-17), with a gap day
"""

import plistlib
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pytest

from imessage_insights.utils import datetime_to_apple_ns

JOHN = "+14155551234"
JANE = "jane.smith@acme.com"
STRANGER = "+15550001111"

DAY_ONE = date(2024, 1, 15)
DAY_TWO = date(2024, 1, 17)

# person → day → (incoming, outgoing)
SAMPLE_DAILY_COUNTS = {
    JOHN: {DAY_ONE: (2, 1), DAY_TWO: (2, 1)},
    JANE: {DAY_ONE: (1, 1), DAY_TWO: (2, 1)},
    STRANGER: {DAY_ONE: (1, 0)},
}
SAMPLE_TOTAL_MESSAGES = 12
SAMPLE_BODY_ROWS = 12
SAMPLE_UNDECODABLE_ROWS = 1


def pytest_configure(config):
    config.addinivalue_line("markers", "property: hypothesis property-based tests")
    config.addinivalue_line("markers", "integration: tests that need real macOS databases")


# =============================================================================
# attributedBody builders
# =============================================================================


def make_keyed_archive(text: str, mutable_holder: bool = False) -> bytes:
    """
    Build an NSKeyedArchiver attributed string the way Messages stores it.

    Args:
        text: Plain string payload.
        mutable_holder: Wrap the string in an NSMutableString object with an
                        NS.string key instead of referencing it directly.
    """
    objects = [
        "$null",
        {
            "NSString": plistlib.UID(2),
            "NSAttributes": plistlib.UID(0),
            "$class": plistlib.UID(4),
        },
    ]
    if mutable_holder:
        objects.append({"NS.string": plistlib.UID(3), "$class": plistlib.UID(5)})
    else:
        objects.append(text)
    objects.append(text if mutable_holder else "$null")
    objects.append({"$classname": "NSAttributedString", "$classes": ["NSAttributedString", "NSObject"]})
    objects.append({"$classname": "NSMutableString", "$classes": ["NSMutableString", "NSString", "NSObject"]})

    archive = {
        "$version": 100000,
        "$archiver": "NSKeyedArchiver",
        "$top": {"root": plistlib.UID(1)},
        "$objects": objects,
    }
    return plistlib.dumps(archive, fmt=plistlib.FMT_BINARY)


def _typedstream_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    if length < 0x10000:
        return b"\x81" + length.to_bytes(2, "little")
    return b"\x82" + length.to_bytes(4, "little")


def make_typedstream(text: str) -> bytes:
    """Build a legacy typedstream (NSArchiver) attributed string."""
    payload = text.encode("utf-8")
    return (
        b"\x04\x0bstreamtyped\x81\xe8\x03\x84\x01@\x84\x84\x84"
        b"\x12NSAttributedString\x00\x84\x84\x08NSObject\x00\x85\x92"
        b"\x84\x84\x84\x08NSString\x01\x94\x84\x01+"
        + _typedstream_length(len(payload))
        + payload
        + b"\x86\x84\x02iI\x01\x01\x92\x84\x84\x84\x0cNSDictionary\x00\x94\x84\x01i\x00\x86\x86"
    )


@pytest.fixture
def keyed_archive():
    """Factory fixture for keyed-archive blobs."""
    return make_keyed_archive


@pytest.fixture
def typedstream():
    """Factory fixture for typedstream blobs."""
    return make_typedstream


# =============================================================================
# Sample chat.db fixtures
# =============================================================================

CHAT_DB_SCHEMA = """
    CREATE TABLE handle (
        ROWID INTEGER PRIMARY KEY,
        id TEXT NOT NULL,
        service TEXT,
        country TEXT
    );

    CREATE TABLE chat (
        ROWID INTEGER PRIMARY KEY,
        chat_identifier TEXT,
        display_name TEXT,
        service_name TEXT
    );

    CREATE TABLE message (
        ROWID INTEGER PRIMARY KEY,
        text TEXT,
        attributedBody BLOB,
        cache_has_attachments INTEGER DEFAULT 0,
        handle_id INTEGER DEFAULT 0,
        date INTEGER,
        is_from_me INTEGER DEFAULT 0
    );

    CREATE TABLE chat_message_join (
        chat_id INTEGER,
        message_id INTEGER,
        PRIMARY KEY (chat_id, message_id)
    );

    CREATE TABLE chat_handle_join (
        chat_id INTEGER,
        handle_id INTEGER,
        PRIMARY KEY (chat_id, handle_id)
    );
"""


def _at(day: date, hour: int = 12) -> int:
    return datetime_to_apple_ns(datetime(day.year, day.month, day.day, hour, 0, 0))


def create_chat_db(db_path: Path) -> Path:
    """Create an empty chat.db with Apple's schema."""
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(CHAT_DB_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return db_path


def insert_messages(db_path: Path, messages, joins=()) -> None:
    """
    Insert message rows and chat_message_join rows.

    Args:
        messages: (ROWID, text, attributedBody, cache_has_attachments,
                  handle_id, date, is_from_me) tuples.
        joins: (chat_id, message_id) tuples.
    """
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executemany(
            """INSERT INTO message
               (ROWID, text, attributedBody, cache_has_attachments, handle_id, date, is_from_me)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            messages,
        )
        conn.executemany(
            "INSERT INTO chat_message_join (chat_id, message_id) VALUES (?, ?)",
            joins,
        )
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def sample_chat_db(tmp_path: Path) -> Path:
    """
    Create a minimal chat.db with test data.

    Creates a SQLite database that mimics Apple's chat.db schema
    with sample handles, chats and messages (see module docstring).

    Returns:
        Path to the sample chat.db file.
    """
    db_path = create_chat_db(tmp_path / "chat.db")
    conn = sqlite3.connect(str(db_path))

    try:
        handles = [
            (1, JOHN, "iMessage", "us"),
            (2, JANE, "iMessage", None),
            (3, STRANGER, "SMS", "us"),
        ]
        conn.executemany(
            "INSERT INTO handle (ROWID, id, service, country) VALUES (?, ?, ?, ?)",
            handles,
        )

        chats = [
            (1, JOHN, None, "iMessage"),
            (2, JANE, None, "iMessage"),
            (3, "chat123456", "Weekend plans", "iMessage"),
        ]
        conn.executemany(
            "INSERT INTO chat (ROWID, chat_identifier, display_name, service_name) VALUES (?, ?, ?, ?)",
            chats,
        )
        conn.executemany(
            "INSERT INTO chat_handle_join (chat_id, handle_id) VALUES (?, ?)",
            [(1, 1), (2, 2), (3, 1), (3, 2)],
        )
        conn.commit()
    finally:
        conn.close()

    messages = [
        (1, "Hello there.", None, 0, 1, _at(DAY_ONE), 0),
        (2, "Hi John.", None, 0, 0, _at(DAY_ONE), 1),
        (3, "How are you? I am fine.", None, 0, 1, _at(DAY_ONE), 0),
        (4, None, make_keyed_archive("Decoded from archive."), 0, 1, _at(DAY_TWO), 0),
        (5, None, None, 1, 1, _at(DAY_TWO, hour=9), 0),  # Attachment only
        (6, "Email test.", None, 0, 2, _at(DAY_ONE), 0),
        (7, None, make_typedstream("Legacy body text."), 0, 2, _at(DAY_TWO), 0),
        (8, "Group hello everyone.", None, 0, 0, _at(DAY_TWO), 1),  # To chat 3
        (9, None, b"not an archive", 0, 2, _at(DAY_TWO), 0),  # Undecodable
        (10, "See https://example.com/page now.", None, 0, 0, _at(DAY_ONE), 1),
        (11, "Who is this?", None, 0, 3, _at(DAY_ONE), 0),
    ]
    joins = [
        (1, 1),
        (1, 2),
        (1, 3),
        (1, 4),
        (1, 5),
        (2, 6),
        (2, 7),
        (3, 8),
        (2, 9),
        (2, 10),
    ]
    insert_messages(db_path, messages, joins)
    return db_path


@pytest.fixture
def empty_chat_db(tmp_path: Path) -> Path:
    """
    Create an empty chat.db with schema but no data.

    Returns:
        Path to the empty chat.db file.
    """
    return create_chat_db(tmp_path / "empty_chat.db")


@pytest.fixture
def not_a_chat_db(tmp_path: Path) -> Path:
    """A SQLite file that lacks the Messages tables."""
    db_path = tmp_path / "other.db"
    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT)")
        conn.commit()
    finally:
        conn.close()
    return db_path


# =============================================================================
# Real database fixtures (for integration tests)
# =============================================================================


@pytest.fixture
def real_chat_db() -> Optional[Path]:
    """
    Return path to real chat.db if available and accessible.

    Tests using this fixture should be marked with @pytest.mark.integration.

    Returns:
        Path to real chat.db, or skips test if not available/accessible.
    """
    path = Path.home() / "Library" / "Messages" / "chat.db"
    if not path.exists():
        pytest.skip("Real chat.db not available")

    # Also verify we can actually open it (may fail due to permissions)
    try:
        conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True)
        conn.execute("SELECT 1 FROM message LIMIT 1")
        conn.close()
    except sqlite3.OperationalError:
        pytest.skip("Cannot access chat.db (permission denied or locked)")

    return path


# =============================================================================
# Contacts Database (AddressBook) fixtures
# =============================================================================

CONTACTS_SCHEMA = """
    -- Contact records
    CREATE TABLE ZABCDRECORD (
        Z_PK INTEGER PRIMARY KEY,
        ZFIRSTNAME TEXT,
        ZLASTNAME TEXT,
        ZORGANIZATION TEXT,
        ZNICKNAME TEXT
    );

    -- Phone numbers
    CREATE TABLE ZABCDPHONENUMBER (
        Z_PK INTEGER PRIMARY KEY,
        ZOWNER INTEGER,
        ZFULLNUMBER TEXT,
        ZLABEL TEXT
    );

    -- Email addresses
    CREATE TABLE ZABCDEMAILADDRESS (
        Z_PK INTEGER PRIMARY KEY,
        ZOWNER INTEGER,
        ZADDRESS TEXT,
        ZLABEL TEXT
    );
"""


@pytest.fixture
def sample_contacts_db(tmp_path: Path) -> Path:
    """
    Create a minimal AddressBook database with Core Data schema.

    Mimics Apple's Contacts database structure with Z-prefixed tables.

    Returns:
        Path to the sample contacts database.
    """
    db_path = tmp_path / "AddressBook-v22.abcddb"
    conn = sqlite3.connect(str(db_path))

    try:
        conn.executescript(CONTACTS_SCHEMA)

        contacts = [
            (1, "John", "Doe", None, None),
            (2, "Jane", "Smith", "Acme Corp", None),
            (3, None, None, "Apple Inc", None),  # Organization only
            (4, "Bob", None, None, "Bobby"),  # No phones or emails
        ]
        conn.executemany(
            "INSERT INTO ZABCDRECORD (Z_PK, ZFIRSTNAME, ZLASTNAME, ZORGANIZATION, ZNICKNAME) VALUES (?, ?, ?, ?, ?)",
            contacts,
        )

        phones = [
            (1, 1, "+1 (415) 555-1234", "_$!<Mobile>!$_"),
            (2, 1, "+1 (415) 555-5678", "_$!<Home>!$_"),
            (3, 2, "+442079460958", "_$!<Work>!$_"),
            (4, 3, "(800) 275-2273", "_$!<Main>!$_"),  # Apple support
        ]
        conn.executemany(
            "INSERT INTO ZABCDPHONENUMBER (Z_PK, ZOWNER, ZFULLNUMBER, ZLABEL) VALUES (?, ?, ?, ?)",
            phones,
        )

        emails = [
            (1, 1, "john.doe@example.com", "_$!<Home>!$_"),
            (2, 2, "Jane.Smith@Acme.com", "_$!<Work>!$_"),
            (3, 2, "jane@personal.com", "_$!<Home>!$_"),
        ]
        conn.executemany(
            "INSERT INTO ZABCDEMAILADDRESS (Z_PK, ZOWNER, ZADDRESS, ZLABEL) VALUES (?, ?, ?, ?)",
            emails,
        )

        conn.commit()

    finally:
        conn.close()

    return db_path


@pytest.fixture
def empty_contacts_db(tmp_path: Path) -> Path:
    """
    Create an empty AddressBook database with schema but no data.

    Returns:
        Path to the empty contacts database.
    """
    db_path = tmp_path / "empty_contacts.abcddb"
    conn = sqlite3.connect(str(db_path))

    try:
        conn.executescript(CONTACTS_SCHEMA)
        conn.commit()

    finally:
        conn.close()

    return db_path
