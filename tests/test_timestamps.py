"""Tests for snapshot naming."""

from __future__ import annotations

from datetime import datetime

import pytest

from savesync.timestamps import (
    display_timestamp,
    format_timestamp,
    parse_timestamp,
    try_parse_timestamp,
)


class TestFormat:
    def test_day_first_with_underscore(self):
        assert format_timestamp(datetime(2025, 3, 7, 21, 4, 59)) == "07-03-2025_21-04-59"

    def test_drops_microseconds(self):
        assert format_timestamp(datetime(2025, 3, 7, 21, 4, 59, 999999)) == "07-03-2025_21-04-59"


class TestParse:
    def test_parses_valid_name(self):
        assert parse_timestamp("07-03-2025_21-04-59") == datetime(2025, 3, 7, 21, 4, 59)

    @pytest.mark.parametrize("name", [
        "latest",
        "07-03-2025",
        "07-03-2025_21-04",
        "07-03-2025_21-04-59_extra",
        "aa-03-2025_21-04-59",
        ".07-03-2025_21-04-59.partial",
        "07-03-2025_21-04-59.zip",
    ])
    def test_rejects_non_snapshot_names(self, name):
        with pytest.raises(ValueError):
            parse_timestamp(name)
        assert try_parse_timestamp(name) is None

    def test_rejects_impossible_date(self):
        with pytest.raises(ValueError):
            parse_timestamp("31-02-2025_00-00-00")

    def test_chronological_not_lexical(self):
        """Day-first names do not sort correctly as strings."""
        older = parse_timestamp("31-12-2025_23-59-59")
        newer = parse_timestamp("01-01-2026_00-00-00")
        assert newer > older
        assert "01-01-2026_00-00-00" < "31-12-2025_23-59-59"


class TestDisplay:
    def test_short_form(self):
        assert display_timestamp("07-03-2025_21-04-59") == "07/03/2025 21:04"
