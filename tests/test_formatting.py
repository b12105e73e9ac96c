from __future__ import annotations

from eventstats.charts.formatting import (
    decimals_for,
    display_value,
    format_percentage,
    format_value,
    percentage,
    round_half_away,
)
from eventstats.charts.models import Formatting


def test_format_value_decimals_follow_rounded_flag() -> None:
    assert format_value(1234.4, Formatting(rounded=True)) == "1234"
    assert format_value(1234.5, Formatting(rounded=False)) == "1234.50"
    assert format_value(7, Formatting()) == "7.00"


def test_format_value_wraps_prefix_and_suffix_without_grouping() -> None:
    formatting = Formatting(rounded=True, prefix="€", suffix=" total")

    assert format_value(1500000, formatting) == "€1500000 total"


def test_legacy_decimals_only_apply_when_rounded_is_absent() -> None:
    assert format_value(3.14159, Formatting(decimals=3)) == "3.142"
    assert format_value(3.14159, Formatting(decimals=3, rounded=True)) == "3"
    assert decimals_for(Formatting(decimals=1, rounded=False)) == 2


def test_na_and_strings_pass_through() -> None:
    formatting = Formatting(rounded=True, prefix="$")

    assert format_value("NA", formatting) == "NA"
    assert format_value(None, formatting) == "NA"
    assert format_value("Sold out", formatting) == "Sold out"


def test_display_value_never_renders_na_as_zero_or_empty() -> None:
    assert display_value("NA") == "N/A"
    assert display_value("NA", na_display="-") == "-"
    assert display_value(0, Formatting(rounded=True)) == "0"


def test_percentage_helpers() -> None:
    assert percentage(1, 3) == 33.33
    assert percentage(1, 3, rounded=True) == 33.0
    assert percentage("NA", 3) is None
    assert percentage(1, 0) is None
    assert format_percentage(33.0, rounded=True) == "33%"
    assert format_percentage(None) == "NA"


def test_halves_round_away_from_zero() -> None:
    assert format_value(2.5, Formatting(rounded=True)) == "3"
    assert format_value(-2.5, Formatting(rounded=True)) == "-3"
    assert format_value(0.125, Formatting(rounded=False)) == "0.13"
    assert round_half_away(1.005, 2) == 1.01


def test_eighth_share_rounds_up() -> None:
    assert percentage(1, 8, rounded=True) == 13.0
    assert percentage(1, 8) == 12.5
