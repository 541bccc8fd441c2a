"""Tests for the string, array and date helpers."""

from datetime import datetime, timezone

import pytest

from zero.util.array_utils import array_to_string_fields, generate_leaderboard_array
from zero.util.date_utils import format_remaining, get_time
from zero.util.string_utils import (
    StringBuilder,
    apply_code_block,
    compare_two_strings,
    format_duration,
    parse_duration,
    strip_non_letters,
)


class TestStringBuilder:
    def test_chained_appends(self):
        text = StringBuilder("a").append("b").append_line().append(3).append_line(2).str()
        assert text == "ab\n3\n\n"

    def test_length_and_str(self):
        builder = StringBuilder().append("hello")
        assert builder.length == 5
        assert str(builder) == "hello"

    def test_reverse(self):
        assert StringBuilder("abc").reverse().str() == "cba"


class TestCompareTwoStrings:
    def test_identical_strings(self):
        assert compare_two_strings("Alchemist", "Alchemist") == 1.0

    def test_whitespace_is_ignored(self):
        assert compare_two_strings("ab cd", "abcd") == 1.0

    def test_short_strings_have_no_bigrams(self):
        assert compare_two_strings("a", "b") == 0.0

    def test_partial_overlap(self):
        # night/nacht share only "ht": 2 * 1 / (4 + 4)
        assert compare_two_strings("night", "nacht") == pytest.approx(0.25)

    def test_repeated_bigrams_counted_once_each(self):
        assert compare_two_strings("aaaa", "aa") == pytest.approx(2 * 1 / (3 + 1))


def test_strip_non_letters():
    assert strip_non_letters("Al-che mist_42!") == "Alchemist"


def test_apply_code_block():
    assert apply_code_block("x", "py") == "```py\nx```"


@pytest.mark.parametrize(
    "text, seconds",
    [("45s", 45), ("30m", 1800), ("2h", 7200), ("1d", 86400), ("1w", 604800), ("10 M", 600)],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == seconds


@pytest.mark.parametrize("text", ["", "abc", "5", "5y", "-5m"])
def test_parse_duration_rejects_non_durations(text):
    assert parse_duration(text) is None


def test_format_duration_picks_largest_exact_unit():
    assert format_duration(7200) == "2h"
    assert format_duration(90) == "90s"
    assert format_duration(86400 * 14) == "2w"


class TestLeaderboard:
    def test_competition_ranking(self):
        board = generate_leaderboard_array([3, 9, 7, 7], key=lambda value: value)
        assert board == [(1, 9), (2, 7), (2, 7), (4, 3)]

    def test_empty(self):
        assert generate_leaderboard_array([], key=lambda value: value) == []


class TestArrayToStringFields:
    def test_chunks_respect_max_length(self):
        fields = array_to_string_fields(list(range(10)), lambda i, item: "x" * 10, max_length=25)
        assert fields == ["x" * 20] * 5
        assert all(len(field) <= 25 for field in fields)

    def test_oversized_item_gets_own_chunk(self):
        fields = array_to_string_fields(["a", "b"], lambda i, item: item * 30, max_length=20)
        assert fields == ["a" * 30, "b" * 30]

    def test_render_receives_index(self):
        fields = array_to_string_fields(["a", "b"], lambda i, item: f"{i}{item} ")
        assert fields == ["0a 1b "]


def test_get_time_formats_milliseconds():
    moment = datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    assert get_time(int(moment.timestamp() * 1000)) == "2021-03-04 05:06:07 UTC"


def test_get_time_handles_missing_values():
    assert get_time(0) == "N/A"
    assert get_time(None) == "N/A"


def test_format_remaining():
    assert format_remaining(125) == "2 Minutes and 5 Seconds"
    assert format_remaining(-3) == "0 Minutes and 0 Seconds"
