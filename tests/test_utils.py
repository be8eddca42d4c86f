"""
Tests for utility functions.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bet_sentinel.utils import (
    safe_float,
    ensure_utc,
    parse_timestamp,
    truncate_id,
    format_amount,
    json_dumps_safe,
    chunk_list,
)


class TestSafeFloat:
    """Tests for safe_float function."""

    def test_valid_float(self):
        assert safe_float(3.14) == 3.14

    def test_valid_string(self):
        assert safe_float("3.14") == 3.14

    def test_none_returns_default(self):
        assert safe_float(None) == 0.0
        assert safe_float(None, 99.0) == 99.0

    def test_invalid_returns_default(self):
        assert safe_float("invalid") == 0.0
        assert safe_float("invalid", -1.0) == -1.0


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_naive_gets_utc(self):
        result = ensure_utc(datetime(2026, 1, 1, 12))
        assert result.tzinfo == timezone.utc
        assert result.hour == 12

    def test_aware_converted(self):
        cet = timezone(timedelta(hours=1))
        result = ensure_utc(datetime(2026, 1, 1, 12, tzinfo=cet))
        assert result == datetime(2026, 1, 1, 11, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc


class TestParseTimestamp:
    """Tests for parse_timestamp function."""

    def test_iso_format(self):
        result = parse_timestamp("2026-01-15T10:30:00")
        assert result == datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_iso_with_z(self):
        result = parse_timestamp("2026-01-15T10:30:00Z")
        assert result == datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_unix_seconds(self):
        result = parse_timestamp(1700000000)
        assert result == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_unix_milliseconds(self):
        assert parse_timestamp(1700000000000) == parse_timestamp(1700000000)

    def test_numeric_string(self):
        assert parse_timestamp("1700000000") == parse_timestamp(1700000000)

    def test_datetime_passthrough(self):
        dt = datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert parse_timestamp(dt) == dt

    def test_none_returns_default(self):
        assert parse_timestamp(None) is None
        default = datetime(2020, 1, 1)
        assert parse_timestamp(None, default) == default

    @pytest.mark.parametrize("value", ["not a date", "", "   ", True, [1, 2]])
    def test_invalid_returns_default(self, value):
        assert parse_timestamp(value) is None


class TestTruncateId:
    """Tests for truncate_id function."""

    def test_long_id(self):
        result = truncate_id("user_0123456789abcdefghij")
        assert result == "user_012...cdefghij"

    def test_short_id(self):
        assert truncate_id("user_1") == "user_1"

    def test_custom_length(self):
        assert truncate_id("abcdefghijklmnopqrstuvwxyz", length=4) == "abcd...wxyz"

    def test_empty(self):
        assert truncate_id("") == ""


class TestFormatAmount:
    """Tests for format_amount function."""

    def test_millions(self):
        assert format_amount(1_500_000) == "$1.50M"

    def test_thousands(self):
        assert format_amount(1_500) == "$1.50K"

    def test_small(self):
        assert format_amount(150) == "$150.00"


class TestJsonDumpsSafe:
    """Tests for json_dumps_safe function."""

    def test_special_types(self):
        data = {
            "amount": Decimal("1.50"),
            "at": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "games": {"Poker", "Dice"},
        }
        loaded = json.loads(json_dumps_safe(data))
        assert loaded == {
            "amount": "1.50",
            "at": "2026-01-01T00:00:00+00:00",
            "games": ["Dice", "Poker"],
        }

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            json_dumps_safe({"x": object()})


class TestChunkList:
    """Tests for chunk_list function."""

    def test_even_chunks(self):
        assert chunk_list([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_uneven_chunks(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunk_list([], 3) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunk_list([1], 0)
