"""
Tests for the last-update day marker store.
"""

import pytest
from datetime import date
from unittest.mock import patch

from auto_package_update.state import (
    LastUpdateStore, parse_day_number, today_day_number, day_number_to_date
)


class TestParseDayNumber:
    """Test parsing of marker file contents."""

    def test_plain_integer(self):
        assert parse_day_number("738000") == 738000

    def test_surrounding_whitespace(self):
        assert parse_day_number("  738000\n") == 738000

    @pytest.mark.parametrize("text", ["", "   ", "abc", "12.5", "0x10", "0", "-3", "+5", "1_000", "١٢٣"])
    def test_invalid_contents(self, text):
        assert parse_day_number(text) is None


class TestDayNumbers:
    """Test day number helpers."""

    def test_today_matches_ordinal(self):
        assert today_day_number() == date.today().toordinal()

    def test_day_number_to_date(self):
        day = date(2024, 3, 1).toordinal()
        assert day_number_to_date(day) == date(2024, 3, 1)


class TestLastUpdateStore:
    """Test LastUpdateStore persistence."""

    def test_read_missing_file(self, store):
        assert store.read() is None

    def test_write_then_read(self, store, state_path):
        assert store.write(738123) is True
        assert state_path.read_text() == "738123"
        assert store.read() == 738123

    def test_write_creates_parent_directory(self, tmp_path):
        path = tmp_path / "a" / "b" / "marker"
        store = LastUpdateStore(path)
        assert store.write(5) is True
        assert path.exists()

    def test_write_replaces_previous_value(self, store):
        store.write(100)
        store.write(200)
        assert store.read() == 200

    def test_corrupt_file_reads_as_none(self, store, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_text("not a number")
        assert store.read() is None

    def test_binary_garbage_reads_as_none(self, store, state_path):
        state_path.parent.mkdir(parents=True)
        state_path.write_bytes(b"\xff\xfe\x00")
        assert store.read() is None

    def test_unwritable_destination_is_skipped(self, store, state_path):
        with patch("auto_package_update.state.os.access", return_value=False):
            assert store.write(42) is False
        assert not state_path.exists()

    def test_write_error_returns_false(self, store):
        with patch("builtins.open", side_effect=OSError("disk full")):
            assert store.write(42) is False

    def test_clear(self, store, state_path):
        store.write(10)
        store.clear()
        assert not state_path.exists()
        # Clearing twice is harmless
        store.clear()
