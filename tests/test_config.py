"""
Tests for config.py configuration module.

Tests configuration path resolution, analytics constants, validation, and
global config management.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

import imessage_insights.config as config_module
from imessage_insights.config import Config, get_config, set_config


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path):
    """Keep real env vars, cwd and AddressBook out of path resolution."""
    mock_contacts = tmp_path / "MockAddressBook"
    mock_contacts.mkdir(exist_ok=True)
    workdir = tmp_path / "workdir"
    workdir.mkdir(exist_ok=True)
    env = {k: v for k, v in os.environ.items() if not k.startswith("IMESSAGE_")}
    with patch.dict(os.environ, env, clear=True), patch.object(
        Config, "DEFAULT_CONTACTS_PATH", mock_contacts
    ), patch.object(Path, "cwd", return_value=workdir):
        yield mock_contacts
    set_config(None)


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    """Create a sample database file."""
    db_path = tmp_path / "chat.db"
    db_path.touch()
    return db_path


@pytest.fixture
def sample_contacts_db(tmp_path: Path) -> Path:
    """Create a sample contacts database file."""
    contacts_path = tmp_path / "AddressBook-v22.abcddb"
    contacts_path.touch()
    return contacts_path


class TestConfigInit:
    """Tests for Config initialization."""

    def test_init_with_explicit_path(self, sample_db: Path):
        """Should use explicit db_path when provided."""
        config = Config(db_path=str(sample_db))
        assert config.db_path == sample_db

    def test_init_with_contacts_path(self, sample_contacts_db: Path):
        """Should use explicit contacts_db_path when provided."""
        config = Config(contacts_db_path=str(sample_contacts_db))
        assert config.contacts_db_path == sample_contacts_db
        assert config.contacts_path_given is True

    def test_env_var_used_when_no_argument(self, sample_db: Path):
        with patch.dict(os.environ, {"IMESSAGE_DB_PATH": str(sample_db)}):
            config = Config()
        assert config.db_path == sample_db

    def test_argument_overrides_env_var(self, sample_db: Path, tmp_path: Path):
        other = tmp_path / "other.db"
        with patch.dict(os.environ, {"IMESSAGE_DB_PATH": str(other)}):
            config = Config(db_path=str(sample_db))
        assert config.db_path == sample_db

    def test_contacts_env_var(self, sample_contacts_db: Path):
        with patch.dict(os.environ, {"IMESSAGE_CONTACTS_DB_PATH": str(sample_contacts_db)}):
            config = Config()
        assert config.contacts_db_path == sample_contacts_db
        assert config.contacts_path_given is True

    def test_contacts_path_not_given_by_default(self):
        assert Config().contacts_path_given is False

    def test_cwd_chat_db_preferred_over_default(self, tmp_path: Path):
        local_db = tmp_path / "workdir" / "chat.db"
        local_db.touch()
        config = Config()
        assert config.db_path == local_db

    def test_default_path_kept_when_missing(self, tmp_path: Path):
        """The default location is kept so error messages can name it."""
        with patch.object(Config, "DEFAULT_MESSAGES_PATH", tmp_path / "Messages"):
            config = Config()
        assert config.db_path == tmp_path / "Messages" / "chat.db"
        assert config.validate() is False


class TestAnalyticsConstants:
    """Tests for the tunable analytics constants."""

    def test_defaults(self):
        config = Config()
        assert config.smoothing_alpha == 0.1
        assert config.readability_min_words == 50
        assert config.readability_top_n == 5
        assert config.readability_prolific_n == 10
        assert config.top_people_n == 10

    def test_overrides(self):
        config = Config(smoothing_alpha=0.5, readability_min_words=10, top_people_n=3)
        assert config.smoothing_alpha == 0.5
        assert config.readability_min_words == 10
        assert config.top_people_n == 3

    def test_alpha_one_allowed(self):
        assert Config(smoothing_alpha=1.0).smoothing_alpha == 1.0

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_invalid_alpha_rejected(self, alpha):
        with pytest.raises(ValueError):
            Config(smoothing_alpha=alpha)


class TestConfigPathResolution:
    """Tests for path properties."""

    def test_db_path_str_property(self, sample_db: Path):
        """db_path_str property should return string."""
        config = Config(db_path=str(sample_db))
        assert config.db_path_str == str(sample_db)

    def test_db_path_str_none_when_not_set(self):
        """db_path_str should be None when db_path not set."""
        config = Config()
        config._db_path = None
        assert config.db_path_str is None

    def test_contacts_db_path_str_property(self, sample_contacts_db: Path):
        """contacts_db_path_str should return string when set."""
        config = Config(contacts_db_path=str(sample_contacts_db))
        assert config.contacts_db_path_str == str(sample_contacts_db)

    def test_contacts_db_path_str_none_when_not_set(self):
        """contacts_db_path_str should be None when not found."""
        config = Config()
        assert config.contacts_db_path is None
        assert config.contacts_db_path_str is None


class TestConfigValidation:
    """Tests for validate methods."""

    def test_validate_with_existing_file(self, sample_db: Path):
        """validate() should return True for existing readable file."""
        config = Config(db_path=str(sample_db))
        assert config.validate() is True

    def test_validate_with_nonexistent_file(self, tmp_path: Path):
        """validate() should return False for nonexistent file."""
        config = Config(db_path=str(tmp_path / "nonexistent.db"))
        assert config.validate() is False

    def test_validate_contacts_with_existing_file(self, sample_contacts_db: Path):
        """validate_contacts() should return True for existing file."""
        config = Config(contacts_db_path=str(sample_contacts_db))
        assert config.validate_contacts() is True

    def test_validate_contacts_with_none_path(self):
        """validate_contacts() should return False when contacts_db_path is None."""
        config = Config()
        assert config.validate_contacts() is False


class TestFindContactsDb:
    """Tests for _find_contacts_db method."""

    def test_finds_contacts_db(self, isolated_environment: Path):
        """Should find AddressBook-vXX.abcddb file."""
        (isolated_environment / "AddressBook-v22.abcddb").touch()
        config = Config()
        assert config.contacts_db_path == isolated_environment / "AddressBook-v22.abcddb"

    def test_highest_version_wins(self, isolated_environment: Path):
        (isolated_environment / "AddressBook-v21.abcddb").touch()
        (isolated_environment / "AddressBook-v22.abcddb").touch()
        config = Config()
        assert config.contacts_db_path.name == "AddressBook-v22.abcddb"

    def test_returns_none_when_dir_not_exists(self, tmp_path: Path):
        """Should return None when AddressBook dir doesn't exist."""
        with patch.object(Config, "DEFAULT_CONTACTS_PATH", tmp_path / "nonexistent"):
            config = Config()
            assert config.contacts_db_path is None

    def test_returns_none_when_no_matching_file(self, isolated_environment: Path):
        """Should return None when no AddressBook-vXX.abcddb found."""
        (isolated_environment / "other.db").touch()
        config = Config()
        assert config.contacts_db_path is None


class TestGlobalConfig:
    """Tests for get_config and set_config functions."""

    def test_get_config_returns_same_instance(self):
        """get_config should return same instance on subsequent calls."""
        set_config(None)
        config1 = get_config()
        config2 = get_config()
        assert isinstance(config1, Config)
        assert config1 is config2

    def test_get_config_with_path_creates_new(self, sample_db: Path):
        """get_config with db_path should create new instance."""
        set_config(None)
        config1 = get_config()
        config2 = get_config(db_path=str(sample_db))

        assert config2 is not config1
        assert config2.db_path == sample_db

    def test_set_config(self, sample_db: Path):
        """set_config should replace global config."""
        new_config = Config(db_path=str(sample_db))
        set_config(new_config)

        assert config_module._config is new_config
        assert get_config() is new_config
