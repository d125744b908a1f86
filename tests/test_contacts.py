"""
Tests for contacts.py.

Tests display-name building, NameIndex construction and the
AddressBook-backed contacts source.
"""

import shutil
from pathlib import Path

import pytest

from imessage_insights.contacts import (
    AddressBookSource,
    ContactCard,
    NameIndex,
    digits_only,
    display_name,
)


class TestDisplayName:
    """Tests for display_name."""

    def test_first_and_last(self):
        assert display_name("John", "Doe") == "John Doe"

    def test_first_only(self):
        assert display_name("John", None) == "John"

    def test_organization_fallback(self):
        assert display_name(None, "", "Apple Inc") == "Apple Inc"

    def test_nickname_fallback(self):
        assert display_name(None, None, None, "Bobby") == "Bobby"

    def test_whitespace_only_parts_ignored(self):
        assert display_name("  ", " ", None, None) is None


class TestNameIndex:
    """Tests for NameIndex."""

    def test_from_cards_normalizes_keys(self):
        index = NameIndex.from_cards(
            [ContactCard("John Doe", phones=("+1 (415) 555-1234",), emails=("John@Example.COM",))]
        )
        assert index["14155551234"] == "John Doe"
        assert index["john@example.com"] == "John Doe"

    def test_later_cards_overwrite(self):
        index = NameIndex.from_cards(
            [
                ContactCard("First", phones=("5551234567",)),
                ContactCard("Second", phones=("555-123-4567",)),
            ]
        )
        assert index["5551234567"] == "Second"

    def test_empty_values_and_names_skipped(self):
        index = NameIndex.from_cards(
            [ContactCard("", phones=("5551234567",)), ContactCard("Ann", phones=("---",), emails=("  ",))]
        )
        assert len(index) == 0

    def test_keys_sorted(self):
        index = NameIndex({"b": "B", "a": "A", "c": "C"})
        assert list(index) == ["a", "b", "c"]
        assert index.sorted_keys() == ("a", "b", "c")

    def test_read_only(self):
        index = NameIndex({"a": "A"})
        with pytest.raises(TypeError):
            index["b"] = "B"  # type: ignore[index]

    def test_mapping_behaviour(self):
        index = NameIndex({"a": "A"})
        assert index.get("missing") is None
        assert "a" in index
        assert dict(index) == {"a": "A"}

    def test_digits_only(self):
        assert digits_only("+1 (415) 555-1234") == "14155551234"
        assert digits_only("abc") == ""


class TestAddressBookSource:
    """Tests for AddressBookSource."""

    def test_fetch_cards(self, sample_contacts_db: Path):
        cards = AddressBookSource([sample_contacts_db]).fetch_cards()
        by_name = {card.name: card for card in cards}

        assert set(by_name) == {"John Doe", "Jane Smith", "Apple Inc"}
        assert by_name["John Doe"].phones == ("+1 (415) 555-1234", "+1 (415) 555-5678")
        assert by_name["Jane Smith"].emails == ("Jane.Smith@Acme.com", "jane@personal.com")

    def test_contacts_without_identifiers_skipped(self, sample_contacts_db: Path):
        cards = AddressBookSource([sample_contacts_db]).fetch_cards()
        assert all(card.name not in ("Bob", "Bobby") for card in cards)

    def test_empty_store(self, empty_contacts_db: Path):
        assert AddressBookSource([empty_contacts_db]).fetch_cards() == []

    def test_unreadable_store_skipped(self, tmp_path: Path, sample_contacts_db: Path, caplog):
        broken = tmp_path / "broken.abcddb"
        broken.write_bytes(b"not sqlite" * 50)

        cards = AddressBookSource([broken, sample_contacts_db]).fetch_cards()

        assert len(cards) == 3
        assert "Cannot read Contacts store" in caplog.text

    def test_discover_includes_account_sources(self, tmp_path: Path, sample_contacts_db: Path):
        root = tmp_path / "AddressBook"
        account = root / "Sources" / "ABC-123"
        account.mkdir(parents=True)
        shutil.copy(sample_contacts_db, root / "AddressBook-v22.abcddb")
        shutil.copy(sample_contacts_db, account / "AddressBook-v22.abcddb")

        source = AddressBookSource.discover(root)

        assert len(source.paths) == 2
        assert len(source.fetch_cards()) == 6

    def test_discover_missing_directory(self, tmp_path: Path):
        assert AddressBookSource.discover(tmp_path / "nope").paths == []

    def test_index_from_store(self, sample_contacts_db: Path):
        index = NameIndex.from_cards(AddressBookSource([sample_contacts_db]).fetch_cards())
        assert index["14155555678"] == "John Doe"
        assert index["jane.smith@acme.com"] == "Jane Smith"
        assert index["8002752273"] == "Apple Inc"
