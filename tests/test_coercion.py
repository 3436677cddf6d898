"""
Tests for the total field coercion helpers.
"""

from datetime import datetime, timezone

from analytics_service.coercion import (
    MAX_LABEL_LENGTH,
    coerce_visitor_id,
    format_referrer,
    format_timestamp,
    generate_visitor_id,
    language_tag,
    resolve_timestamp,
    to_bounded_string,
    to_counter_map,
    to_iso_timestamp,
    to_label,
    to_non_negative_int,
    to_path,
)


class TestNumbers:
    """Test non-negative integer coercion."""

    def test_plain_and_numeric_strings(self):
        assert to_non_negative_int(5) == 5
        assert to_non_negative_int("12") == 12
        assert to_non_negative_int(" 3.7 ") == 3
        assert to_non_negative_int(7.9) == 7

    def test_invalid_values_become_zero(self):
        """Test that negatives, NaN, infinities and junk collapse to 0."""
        for value in (-5, "-2", float("nan"), float("inf"), "abc", None, [1], {"a": 1}):
            assert to_non_negative_int(value) == 0

    def test_booleans(self):
        assert to_non_negative_int(True) == 1
        assert to_non_negative_int(False) == 0


class TestStrings:
    """Test bounded string coercion."""

    def test_strip_and_truncate(self):
        assert to_bounded_string("  abc  ", 10) == "abc"
        assert to_bounded_string("abcdef", 3) == "abc"
        # Whitespace exposed by truncation is stripped as well
        assert to_bounded_string("ab  cd", 3) == "ab"

    def test_non_scalars_and_blanks(self):
        assert to_bounded_string("   ", 10) is None
        assert to_bounded_string(None, 10) is None
        assert to_bounded_string(True, 10) is None
        assert to_bounded_string(["x"], 10) is None

    def test_numbers_are_stringified(self):
        assert to_bounded_string(42, 10) == "42"

    def test_label_collapses_whitespace(self):
        assert to_label("  Sign \n\t up  ") == "Sign up"
        assert to_label(None) == ""
        assert len(to_label("x" * 500)) == MAX_LABEL_LENGTH

    def test_path_defaults_to_root(self):
        assert to_path(None) == "/"
        assert to_path("  ") == "/"
        assert to_path("/docs") == "/docs"


class TestTimestamps:
    """Test timestamp parsing and formatting."""

    def test_format_has_millisecond_precision(self):
        moment = datetime(2024, 3, 5, 10, 20, 30, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2024-03-05T10:20:30.123Z"

    def test_parse_iso_strings(self):
        assert to_iso_timestamp("2024-03-05T10:20:30Z") == "2024-03-05T10:20:30.000Z"
        assert to_iso_timestamp("2024-03-05T10:20:30.500+02:00") == "2024-03-05T08:20:30.500Z"
        # Naive values are read as UTC
        assert to_iso_timestamp("2024-03-05T10:20:30") == "2024-03-05T10:20:30.000Z"

    def test_parse_epoch_milliseconds(self):
        assert to_iso_timestamp(0) == "1970-01-01T00:00:00.000Z"
        assert to_iso_timestamp(1_700_000_000_000) == "2023-11-14T22:13:20.000Z"

    def test_canonical_form_is_stable(self):
        canonical = "2024-03-05T10:20:30.123Z"
        assert to_iso_timestamp(canonical) == canonical

    def test_unparsable_values(self):
        for value in ("not a date", "", None, True, float("nan"), {"t": 1}, 10 ** 20):
            assert to_iso_timestamp(value) is None

    def test_resolve_falls_back_to_now(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert resolve_timestamp("garbage", now) == "2024-05-01T12:00:00.000Z"
        assert resolve_timestamp("2024-01-01T00:00:00Z", now) == "2024-01-01T00:00:00.000Z"


class TestReferrersAndLanguages:
    """Test referrer and language reduction."""

    def test_referrer_hostname(self):
        assert format_referrer("https://www.example.com/path?q=1") == "www.example.com"
        assert format_referrer("http://Example.org:8080/") == "example.org"

    def test_referrer_without_scheme(self):
        assert format_referrer("example.org/") == "example.org"

    def test_referrer_direct(self):
        assert format_referrer("") == "Direct"
        assert format_referrer(None) == "Direct"

    def test_language_tag(self):
        assert language_tag("en-US,en;q=0.9") == "en-US"
        assert language_tag("fr") == "fr"
        assert language_tag("") is None
        assert language_tag(None) is None


class TestMisc:
    """Test counter maps and visitor ids."""

    def test_counter_map(self):
        assert to_counter_map({"a": "3", "b": -1, 1: 2}) == {"a": 3, "b": 0, "1": 2}
        assert to_counter_map(["a"]) == {}

    def test_counter_map_with_key_limit(self):
        counters = to_counter_map({"ab1": 1, "ab2": "2", "  ": 5, "x": -3}, limit=2)
        assert counters == {"ab": 3, "x": 0}
        assert to_counter_map({"a" * 50: 1}, limit=10) == {"a" * 10: 1}

    def test_generated_visitor_ids(self):
        first = generate_visitor_id("v")
        second = generate_visitor_id("v")
        assert first.startswith("v-")
        assert len(first) == len("v-") + 12
        assert first != second

    def test_coerce_visitor_id(self):
        assert coerce_visitor_id("  abc ") == "abc"
        assert coerce_visitor_id("").startswith("srv-")
        assert len(coerce_visitor_id("x" * 300)) == 120
