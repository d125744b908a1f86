"""
SQL query definitions for iMessage Insights.

Every analytical query is built on the same "per person" message shape:

    outgoing: one row per participant of the chat the message was sent to
              (message → chat_message_join → chat_handle_join → handle)
    incoming: one row per sender (message.handle_id → handle)

joined with UNION ALL. Group chats therefore count an outgoing message once
for every participant.

Time buckets are derived in SQLite with the 'localtime' modifier, so the
day/hour boundaries follow the local time zone of the process running the
query, not UTC.
"""

from typing import Tuple

# Tables every query below depends on
REQUIRED_TABLES: Tuple[str, ...] = (
    "message",
    "handle",
    "chat_message_join",
    "chat_handle_join",
)

# message.date is nanoseconds since 2001-01-01 on modern macOS; older
# archives stored seconds. Anything below this threshold is seconds.
_NANOSECOND_THRESHOLD = 100_000_000_000


def table_names() -> str:
    """Get query to retrieve all table names."""
    return "SELECT `name` FROM `sqlite_master` WHERE `type`='table';"


def _unix_seconds(column: str) -> str:
    """SQL expression converting an Apple timestamp column to Unix seconds."""
    return (
        f"(CASE WHEN {column} > {_NANOSECOND_THRESHOLD} "
        f"THEN {column} / 1000000000 ELSE {column} END "
        f"+ strftime('%s', '2001-01-01'))"
    )


def local_day_expression(column: str = "combined.date") -> str:
    """SQL expression for the local calendar day (YYYY-MM-DD) of a timestamp."""
    return f"DATE({_unix_seconds(column)}, 'unixepoch', 'localtime')"


def local_hour_expression(column: str = "combined.date") -> str:
    """SQL expression for the local hour of day (0-23) of a timestamp."""
    return f"CAST(strftime('%H', {_unix_seconds(column)}, 'unixepoch', 'localtime') AS INTEGER)"


def _per_person_messages(columns: str, where: str = "") -> str:
    """
    Build the UNION ALL of outgoing-per-recipient and incoming-per-sender rows.

    Args:
        columns: Extra message columns to project after person and direction,
                 written against alias `m`.
        where: Optional extra predicate ANDed into both halves.

    Returns:
        SQL for a subquery producing (person, direction, <columns>).
    """
    extra = f" AND ({where})" if where else ""
    return f"""
        SELECT
            h.id AS person,
            1 AS direction,
            {columns}
        FROM message AS m
        JOIN chat_message_join AS cmj ON cmj.message_id = m.ROWID
        JOIN chat_handle_join AS chj ON chj.chat_id = cmj.chat_id
        JOIN handle AS h ON h.ROWID = chj.handle_id
        WHERE m.is_from_me = 1{extra}

        UNION ALL

        SELECT
            h.id AS person,
            0 AS direction,
            {columns}
        FROM message AS m
        JOIN handle AS h ON h.ROWID = m.handle_id
        WHERE m.is_from_me = 0{extra}
    """


def daily_message_counts() -> str:
    """
    Get query counting messages per (person, local day, direction).

    Returns:
        SQL query string producing (person, day 'YYYY-MM-DD', direction, count).
    """
    return f"""
        SELECT
            combined.person AS person,
            {local_day_expression()} AS day,
            combined.direction AS direction,
            COUNT(*) AS count
        FROM ({_per_person_messages("m.date AS date")}) AS combined
        GROUP BY person, day, direction
        ORDER BY person, day, direction;
    """


def hourly_message_counts() -> str:
    """
    Get query counting messages per (person, local hour-of-day, direction).

    Returns:
        SQL query string producing (person, hour 0-23, direction, count).
    """
    return f"""
        SELECT
            combined.person AS person,
            {local_hour_expression()} AS hour,
            combined.direction AS direction,
            COUNT(*) AS count
        FROM ({_per_person_messages("m.date AS date")}) AS combined
        GROUP BY person, hour, direction
        ORDER BY person, hour, direction;
    """


def message_bodies() -> str:
    """
    Get query returning every candidate message body for readability scoring.

    Rows without text, archived body or attachments are filtered in SQL.

    Returns:
        SQL query string producing
        (person, direction, text, attributed_body, has_attachments).
    """
    columns = """m.text AS text,
            m.attributedBody AS attributed_body,
            m.cache_has_attachments AS has_attachments"""
    where = (
        "m.text IS NOT NULL "
        "OR m.attributedBody IS NOT NULL "
        "OR m.cache_has_attachments = 1"
    )
    return f"""
        SELECT person, direction, text, attributed_body, has_attachments
        FROM ({_per_person_messages(columns, where)}) AS combined;
    """


def message_totals_by_person() -> str:
    """
    Get query counting raw per-person messages by direction (no time bucket).

    Used to cross-check the bucketed aggregations.

    Returns:
        SQL query string producing (person, direction, count).
    """
    return f"""
        SELECT combined.person, combined.direction, COUNT(*) AS count
        FROM ({_per_person_messages("m.date AS date")}) AS combined
        GROUP BY combined.person, combined.direction
        ORDER BY combined.person, combined.direction;
    """
