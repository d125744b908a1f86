"""
Archive connection and query module.

Provides read-only access to chat.db with the archive error taxonomy
applied at the boundary: callers only ever see ArchiveNotFound or
ArchiveUnreadable, never a raw sqlite3 exception.
"""

import os
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, List, Optional, Tuple
import logging

from imessage_insights.config import Config
from imessage_insights.errors import ArchiveNotFound, ArchiveUnreadable
from imessage_insights.queries import REQUIRED_TABLES, table_names

logger = logging.getLogger(__name__)


class ArchiveReader:
    """
    Read-only connection manager for the iMessage chat.db archive.

    Usage:
        with ArchiveReader(config) as reader:
            rows = reader.execute_query(daily_message_counts())
    """

    def __init__(self, config: Config, *, use_memory: bool = False):
        """
        Initialize the reader.

        Args:
            config: Configuration object with the archive path.
            use_memory: Copy the archive into an in-memory database on connect.

        Raises:
            ArchiveNotFound: If no path is configured or the file is absent.
        """
        db_path = config.db_path
        if db_path is None or not db_path.exists():
            raise ArchiveNotFound(f"Archive not found: {config.db_path_str}", path=db_path)

        self.config = config
        self.use_memory = use_memory
        self._connection: Optional[sqlite3.Connection] = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    @property
    def path(self) -> Path:
        """Path of the archive being read."""
        assert self.config.db_path is not None
        return self.config.db_path

    def connect(self) -> sqlite3.Connection:
        """
        Establish a read-only connection and verify the expected schema.

        Returns:
            SQLite connection object.

        Raises:
            ArchiveNotFound: If the file disappeared since construction.
            ArchiveUnreadable: If the file cannot be opened, is not a SQLite
                database, or lacks the required tables.
        """
        if self._connection is not None:
            return self._connection

        db_path = self.path
        if not db_path.exists():
            raise ArchiveNotFound(f"Archive not found: {db_path}", path=db_path)
        if not os.access(db_path, os.R_OK):
            raise ArchiveUnreadable(f"Archive is not readable: {db_path}", path=db_path)

        uri = f"file:{db_path}?mode=ro"
        conn: Optional[sqlite3.Connection] = None
        try:
            if self.use_memory:
                # Backup API keeps WAL-mode archives consistent
                with closing(sqlite3.connect(uri, uri=True)) as disk_conn:
                    conn = sqlite3.connect(":memory:")
                    disk_conn.backup(conn)
                logger.info(f"Loaded archive into memory from: {db_path}")
            else:
                conn = sqlite3.connect(uri, uri=True)
                logger.info(f"Connected to archive: {db_path}")

            self._verify_schema(conn)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            logger.error(f"Failed to open archive {db_path}: {e}")
            raise ArchiveUnreadable(f"Cannot open archive {db_path}: {e}", path=db_path) from e
        except ArchiveUnreadable:
            if conn is not None:
                conn.close()
            raise

        self._connection = conn
        return conn

    def _verify_schema(self, conn: sqlite3.Connection) -> None:
        """Raise ArchiveUnreadable if any required table is missing."""
        with closing(conn.cursor()) as cursor:
            cursor.execute(table_names())
            present = {row[0] for row in cursor.fetchall()}

        missing = [name for name in REQUIRED_TABLES if name not in present]
        if missing:
            raise ArchiveUnreadable(
                f"Archive {self.path} is missing tables: {', '.join(missing)}",
                path=self.path,
            )

    def close(self) -> None:
        """Close the connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.info("Archive connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """
        Get the open connection.

        Raises:
            RuntimeError: If connection not established.
        """
        if self._connection is None:
            raise RuntimeError("Archive connection not established. Call connect() first.")
        return self._connection

    def get_table_names(self) -> List[str]:
        """
        Get all table names in the archive.

        Returns:
            List of table names.
        """
        return [row[0] for row in self.execute_query(table_names())]

    def execute_query(
        self, query: str, parameters: Optional[Tuple[Any, ...]] = None
    ) -> List[Tuple[Any, ...]]:
        """
        Execute a query and return all rows.

        Args:
            query: SQL query string.
            parameters: Optional query parameters.

        Returns:
            List of result rows.

        Raises:
            ArchiveUnreadable: If SQLite fails while executing the query
                (e.g. a corrupted page or an unexpected schema).
        """
        try:
            with closing(self.connection.cursor()) as cursor:
                if parameters:
                    cursor.execute(query, parameters)
                else:
                    cursor.execute(query)
                return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"Archive query failed: {e}")
            raise ArchiveUnreadable(f"Query failed on {self.path}: {e}", path=self.path) from e
