"""
Configuration module for iMessage Insights.

Handles file locations and the tunable constants of the analytics.

Database Paths:
    - chat.db: Apple's iMessage database (read-only source)
    - AddressBook: Apple's Contacts database (read-only, optional)

Resolution order for each path: explicit argument, then environment
variable, then the platform default.

Environment Variables:
    IMESSAGE_DB_PATH: Path to chat.db.
    IMESSAGE_CONTACTS_DB_PATH: Path to an AddressBook-vXX.abcddb file.
"""

import os
from pathlib import Path
from typing import Optional


class Config:
    """Configuration class for iMessage Insights."""

    # Default database file name
    DEFAULT_DB_NAME = "chat.db"

    # Default path to Messages directory on macOS
    DEFAULT_MESSAGES_PATH = Path.home() / "Library" / "Messages"

    # Default path to Contacts database on macOS
    DEFAULT_CONTACTS_PATH = Path.home() / "Library" / "Application Support" / "AddressBook"

    DB_PATH_ENV = "IMESSAGE_DB_PATH"
    CONTACTS_DB_PATH_ENV = "IMESSAGE_CONTACTS_DB_PATH"

    # Analytics constants
    DEFAULT_SMOOTHING_ALPHA = 0.1
    DEFAULT_READABILITY_MIN_WORDS = 50
    DEFAULT_READABILITY_TOP_N = 5
    DEFAULT_READABILITY_PROLIFIC_N = 10
    DEFAULT_TOP_PEOPLE_N = 10

    def __init__(
        self,
        db_path: Optional[str] = None,
        contacts_db_path: Optional[str] = None,
        *,
        smoothing_alpha: float = DEFAULT_SMOOTHING_ALPHA,
        readability_min_words: int = DEFAULT_READABILITY_MIN_WORDS,
        readability_top_n: int = DEFAULT_READABILITY_TOP_N,
        readability_prolific_n: int = DEFAULT_READABILITY_PROLIFIC_N,
        top_people_n: int = DEFAULT_TOP_PEOPLE_N,
    ):
        """
        Initialize configuration.

        Args:
            db_path: Optional path to chat.db file. If not provided, uses
                    IMESSAGE_DB_PATH, then ./chat.db, then the default
                    Messages directory.
            contacts_db_path: Optional path to AddressBook database. If not
                    provided, uses IMESSAGE_CONTACTS_DB_PATH, then searches
                    the default AddressBook directory.
            smoothing_alpha: EMA decay constant for daily series.
            readability_min_words: Word floor for top/bottom readability lists.
            readability_top_n: Length of top/bottom readability lists.
            readability_prolific_n: Length of the most-prolific list.
            top_people_n: Number of people in "top people" views.

        Raises:
            ValueError: If smoothing_alpha is outside (0, 1].
        """
        if not 0.0 < smoothing_alpha <= 1.0:
            raise ValueError(f"smoothing_alpha must be in (0, 1], got {smoothing_alpha}")

        self.smoothing_alpha = smoothing_alpha
        self.readability_min_words = readability_min_words
        self.readability_top_n = readability_top_n
        self.readability_prolific_n = readability_prolific_n
        self.top_people_n = top_people_n

        # Chat.db path (source)
        self._db_path: Optional[Path] = None
        env_db_path = os.getenv(self.DB_PATH_ENV)
        if db_path:
            self._db_path = Path(db_path)
        elif env_db_path:
            self._db_path = Path(env_db_path)
        else:
            current_dir_db = Path.cwd() / self.DEFAULT_DB_NAME
            if current_dir_db.exists():
                self._db_path = current_dir_db
            else:
                # Keep the default even when missing so errors can name it
                self._db_path = self.DEFAULT_MESSAGES_PATH / self.DEFAULT_DB_NAME

        # Contacts.db path (optional)
        self._contacts_db_path: Optional[Path] = None
        env_contacts_path = os.getenv(self.CONTACTS_DB_PATH_ENV)
        self.contacts_path_given = bool(contacts_db_path or env_contacts_path)
        if contacts_db_path:
            self._contacts_db_path = Path(contacts_db_path)
        elif env_contacts_path:
            self._contacts_db_path = Path(env_contacts_path)
        else:
            self._contacts_db_path = self._find_contacts_db()

    def _find_contacts_db(self) -> Optional[Path]:
        """
        Find the AddressBook database file.

        The AddressBook database has a versioned filename like
        AddressBook-v22.abcddb. The highest version wins.

        Returns:
            Path to the Contacts database, or None if not found.
        """
        if not self.DEFAULT_CONTACTS_PATH.exists():
            return None

        candidates = sorted(self.DEFAULT_CONTACTS_PATH.glob("AddressBook-v*.abcddb"))
        return candidates[-1] if candidates else None

    @property
    def db_path(self) -> Optional[Path]:
        """Get the chat.db file path."""
        return self._db_path

    @property
    def db_path_str(self) -> Optional[str]:
        """Get the chat.db file path as a string."""
        return str(self._db_path) if self._db_path else None

    @property
    def contacts_db_path(self) -> Optional[Path]:
        """Get the Contacts database file path (optional)."""
        return self._contacts_db_path

    @property
    def contacts_db_path_str(self) -> Optional[str]:
        """Get the Contacts database file path as a string."""
        return str(self._contacts_db_path) if self._contacts_db_path else None

    def validate(self) -> bool:
        """
        Validate that the chat.db file exists and is readable.

        Returns:
            True if chat.db exists and is readable, False otherwise.
        """
        if not self._db_path:
            return False
        return self._db_path.exists() and os.access(self._db_path, os.R_OK)

    def validate_contacts(self) -> bool:
        """
        Validate that the Contacts database exists and is readable.

        Returns:
            True if Contacts database exists and is readable, False otherwise.
        """
        if not self._contacts_db_path:
            return False
        return self._contacts_db_path.exists() and os.access(self._contacts_db_path, os.R_OK)


# Process default used by the CLI. Library code receives a Config explicitly.
_config: Optional[Config] = None


def get_config(db_path: Optional[str] = None, contacts_db_path: Optional[str] = None) -> Config:
    """
    Get or create the default configuration instance.

    Args:
        db_path: Optional path to chat.db file.
        contacts_db_path: Optional path to the AddressBook database.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or db_path is not None or contacts_db_path is not None:
        _config = Config(db_path, contacts_db_path)
    return _config


def set_config(config: Optional[Config]) -> None:
    """
    Set (or clear, with None) the default configuration instance.

    Args:
        config: Config instance to use.
    """
    global _config
    _config = config
