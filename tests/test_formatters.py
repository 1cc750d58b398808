from __future__ import annotations

from datetime import datetime

import pytest

from comparator.formatters import (
    PLACEHOLDER,
    country_with_flag,
    diff_fmt,
    fmt_time,
    iso2_to_flag_emoji,
    legend_fmt,
    money_fmt,
    number_fmt,
    pct_fmt,
    percent_fmt,
    relation,
    resolve_formatter,
    small_number_fmt,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1000, "1.0K"),
        (1500, "1.5K"),
        (2_000_000, "2.0M"),
        (3.2e9, "3.2B"),
        (1.3e12, "1.3T"),
        (-4500, "-4.5K"),
        (999, "999"),
        (12.5, "12.5"),
        (0, "0"),
    ],
)
def test_number_fmt_abbreviates(value: float, expected: str) -> None:
    assert number_fmt(value) == expected


def test_number_fmt_unusable_input() -> None:
    assert number_fmt(None) == PLACEHOLDER
    assert number_fmt("") == PLACEHOLDER
    assert number_fmt(float("nan")) == PLACEHOLDER
    assert number_fmt("n/a") == "n/a"


def test_money_fmt_prefixes_dollar() -> None:
    assert money_fmt(63000) == "$63.0K"
    assert money_fmt(None) == PLACEHOLDER


def test_pct_fmt_truncates_and_signs() -> None:
    assert pct_fmt(0.1999) == "+19.9%"
    assert pct_fmt(0) == "+0.0%"
    assert pct_fmt(-0.25) == "-25.0%"
    assert pct_fmt(None) == PLACEHOLDER


def test_small_number_fmt_truncates_toward_zero() -> None:
    assert small_number_fmt(-1.239) == "-1.2"
    assert small_number_fmt(1.99) == "1.9"
    assert small_number_fmt(2.0) == "2"
    assert small_number_fmt(-0.04) == "0"
    assert small_number_fmt(3.14159, 3) == "3.141"
    assert small_number_fmt("abc") == PLACEHOLDER


def test_percent_and_legend_fmt() -> None:
    assert percent_fmt(12.34) == "12.3%"
    assert percent_fmt(20) == "20%"
    assert legend_fmt(1500) == "1.5K"
    assert legend_fmt(2.75) == "2.7"
    assert legend_fmt(None) == PLACEHOLDER


def test_fmt_time_uses_local_clock() -> None:
    stamp = 1_700_000_000_000
    expected = datetime.fromtimestamp(stamp / 1000).strftime("%b %d, %Y, %H:%M")
    assert fmt_time(stamp) == expected
    assert fmt_time(None) == "None"


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        (5, 3, "A"),
        (3, 5, "B"),
        (4, 4, "tie"),
        (None, 4, "na"),
        (4, float("inf"), "na"),
    ],
)
def test_relation(a: object, b: object, expected: str) -> None:
    assert relation(a, b) == expected


def test_diff_fmt_absolute_and_relative() -> None:
    assert diff_fmt(100, 150) == ("+50", "+50.0%")
    assert diff_fmt(2000, 500) == ("-1.5K", "-75.0%")
    assert diff_fmt(1.5, 3.0, "%") == ("+1.5%", "+100.0%")
    assert diff_fmt(7, 7) == ("0", "+0.0%")


def test_diff_fmt_tiny_negative_change_has_no_sign() -> None:
    assert diff_fmt(100, 99.9999) == ("0", "0.0%")
    assert diff_fmt(100, 50) == ("-50", "-50.0%")


def test_diff_fmt_without_base() -> None:
    assert diff_fmt(0, 5) == ("+5", PLACEHOLDER)
    assert diff_fmt(None, 5) == (PLACEHOLDER, PLACEHOLDER)


def test_flags() -> None:
    assert iso2_to_flag_emoji("us") == "\U0001F1FA\U0001F1F8"
    assert iso2_to_flag_emoji("USA") == ""
    assert iso2_to_flag_emoji("1A") == ""
    assert country_with_flag("France", "FR") == "France \U0001F1EB\U0001F1F7"
    assert country_with_flag("France", None) == "France"
    assert country_with_flag("", "FR") == "\U0001F1EB\U0001F1F7"


def test_resolve_formatter() -> None:
    assert resolve_formatter("money")(1500) == "$1.5K"
    assert resolve_formatter("percent", 2)(12.345) == "12.34%"
    assert resolve_formatter("small", 0)(9.9) == "9"
    with pytest.raises(ValueError, match="Unknown formatter"):
        resolve_formatter("bogus")
