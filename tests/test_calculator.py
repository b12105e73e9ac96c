from __future__ import annotations

from typing import Any

import pytest

from eventstats.charts.calculator import calculate, calculate_all, resolve_label
from eventstats.charts.formatting import format_value
from eventstats.charts.models import ChartConfiguration
from eventstats.charts.results import (
    BarResult,
    ImageResult,
    KpiResult,
    PieResult,
    TableResult,
    TextResult,
    ValueResult,
)
from eventstats.charts.validity import has_valid_data
from eventstats.stats.resolver import NA


def _chart(**overrides: Any) -> ChartConfiguration:
    document: dict[str, Any] = {"chartId": "chart-1", "type": "kpi", "title": "Chart"}
    document.update(overrides)
    return ChartConfiguration.model_validate(document)


def test_kpi_resolves_headline_and_formats_rounded() -> None:
    config = _chart(
        type="kpi",
        elements=[{"id": "a", "ref": "eventAttendees"}],
        formatting={"rounded": True},
    )

    result = calculate(config, {"eventAttendees": 482})

    assert isinstance(result, KpiResult)
    assert result.kpi_value == 482
    assert format_value(result.kpi_value, result.formatting) == "482"
    assert has_valid_data(result)


def test_kpi_zero_is_valid_but_na_is_not() -> None:
    config = _chart(type="kpi", elements=[{"id": "a", "ref": "visits"}])

    assert has_valid_data(calculate(config, {"visits": 0}))
    assert not has_valid_data(calculate(config, {}))


def test_kpi_prefers_dedicated_formula() -> None:
    config = _chart(
        type="kpi",
        elements=[{"id": "a", "ref": "ignored"}],
        formula="approved / (approved + rejected) * 100",
    )

    result = calculate(config, {"approved": 30, "rejected": 10})

    assert result.kpi_value == pytest.approx(75.0)


def test_pie_elements_total_and_percentages() -> None:
    config = _chart(
        type="pie",
        elements=[
            {"id": "f", "label": "Female", "ref": "female", "color": "#ff0000"},
            {"id": "m", "label": "Male", "ref": "male", "color": "#0000ff"},
        ],
    )

    result = calculate(config, {"female": 30, "male": 70})

    assert isinstance(result, PieResult)
    assert [element.value for element in result.elements] == [30, 70]
    assert result.total == 100
    assert [element.percentage for element in result.elements] == [
        pytest.approx(30.0),
        pytest.approx(70.0),
    ]
    assert result.elements[0].color == "#ff0000"
    assert has_valid_data(result)


def test_percentages_round_to_whole_numbers_when_rounded() -> None:
    elements = [{"id": key, "ref": key} for key in ("a", "b", "c")]
    stats = {"a": 1, "b": 1, "c": 1}

    rounded = calculate(_chart(type="bar", elements=elements, formatting={"rounded": True}), stats)
    precise = calculate(_chart(type="bar", elements=elements), stats)

    assert [element.percentage for element in rounded.elements] == [33.0, 33.0, 33.0]
    assert [element.percentage for element in precise.elements] == [33.33, 33.33, 33.33]


@pytest.mark.parametrize(
    "stats",
    [
        {"a": 1, "b": 1, "c": 1},
        {"a": 2, "b": 5, "c": 11},
        {"a": 0.4, "b": 7, "c": 1e3},
        {"a": 0, "b": 0, "c": 3},
    ],
)
def test_percentages_sum_to_about_one_hundred(stats: dict[str, float]) -> None:
    elements = [{"id": key, "ref": key} for key in ("a", "b", "c")]
    for rounded in (True, False):
        result = calculate(
            _chart(type="pie", elements=elements, formatting={"rounded": rounded}), stats
        )
        total = sum(element.percentage or 0.0 for element in result.elements)
        # Each share rounds on its own, so thirds at 0 decimals total 99.
        assert abs(total - 100.0) <= 0.5 * len(result.elements)


@pytest.mark.parametrize(
    "stats",
    [
        {"a": 1, "b": 1, "c": 1},
        {"a": 2, "b": 5, "c": 11},
        {"a": 0.4, "b": 7, "c": 1e3},
    ],
)
def test_unrounded_percentages_stay_within_half_a_point_of_one_hundred(
    stats: dict[str, float],
) -> None:
    elements = [{"id": key, "ref": key} for key in ("a", "b", "c")]
    result = calculate(
        _chart(type="pie", elements=elements, formatting={"rounded": False}), stats
    )

    total = sum(element.percentage or 0.0 for element in result.elements)

    assert abs(total - 100.0) <= 0.5


def test_rounded_pie_shares_round_halves_up() -> None:
    elements = [{"id": "a", "ref": "a"}, {"id": "b", "ref": "b"}]
    config = _chart(type="pie", elements=elements, formatting={"rounded": True})

    result = calculate(config, {"a": 1, "b": 7})

    assert [element.percentage for element in result.elements] == [13.0, 88.0]


def test_missing_only_element_makes_bar_invalid() -> None:
    config = _chart(type="bar", elements=[{"id": "web", "ref": "visitWeb"}])

    result = calculate(config, {"visitQr": 10})

    assert isinstance(result, BarResult)
    assert result.elements[0].value == NA
    assert result.total == NA
    assert result.elements[0].percentage is None
    assert not has_valid_data(result)


def test_breakdown_needs_a_positive_value() -> None:
    config = _chart(type="pie", elements=[{"id": "a", "ref": "a"}, {"id": "b", "ref": "b"}])

    assert not has_valid_data(calculate(config, {"a": 0, "b": 0}))
    assert not has_valid_data(calculate(config, {"a": -5, "b": 0}))
    assert has_valid_data(calculate(config, {"a": 0, "b": 2}))


def test_text_table_and_image_carry_content() -> None:
    stats = {"notes": "# Summary", "grid": "| a | b |", "heroUrl": "https://cdn.example/a.png"}

    text = calculate(_chart(type="text", elements=[{"id": "t", "ref": "notes"}]), stats)
    table = calculate(_chart(type="table", elements=[{"id": "t", "ref": "grid"}]), stats)
    image = calculate(_chart(type="image", elements=[{"id": "i", "ref": "heroUrl"}]), stats)

    assert isinstance(text, TextResult) and text.kpi_value == "# Summary"
    assert isinstance(table, TableResult) and table.kpi_value == "| a | b |"
    assert isinstance(image, ImageResult) and image.kpi_value == "https://cdn.example/a.png"
    assert image.aspect_ratio == "16:9"
    assert all(has_valid_data(result) for result in (text, table, image))


def test_empty_content_is_not_valid() -> None:
    config = _chart(type="text", elements=[{"id": "t", "ref": "notes"}])

    assert not has_valid_data(calculate(config, {"notes": ""}))
    assert not has_valid_data(calculate(config, {"notes": "   "}))
    assert not has_valid_data(calculate(config, {}))


def test_text_only_stringifies_numbers_from_plain_lookups() -> None:
    stats = {"attendees": 482, "staff": 18}

    lookup = calculate(_chart(type="text", elements=[{"id": "t", "ref": "attendees"}]), stats)
    prefixed = calculate(_chart(type="table", formula="stats.attendees"), stats)
    computed = calculate(_chart(type="text", formula="attendees + staff"), stats)

    assert lookup.kpi_value == "482"
    assert prefixed.kpi_value == "482"
    assert computed.kpi_value == NA
    assert not has_valid_data(computed)


def test_image_keeps_configured_aspect_ratio() -> None:
    config = _chart(type="image", aspectRatio="9:16", elements=[{"id": "i", "ref": "url"}])

    assert calculate(config, {"url": "https://cdn.example/p.png"}).aspect_ratio == "9:16"


def test_value_composite_validity_follows_bar_half() -> None:
    config = _chart(
        type="value",
        formula="merchScarf + merchFlag",
        elements=[{"id": "s", "ref": "merchScarf"}, {"id": "f", "ref": "merchFlag"}],
    )

    result = calculate(config, {"merchScarf": 4, "merchFlag": 6})
    empty = calculate(config, {"merchScarf": 0, "merchFlag": 0})

    assert isinstance(result, ValueResult)
    assert result.kpi.kpi_value == 10
    assert result.bar.total == 10
    assert has_valid_data(result)
    assert not has_valid_data(empty)


def test_results_echo_configuration_fields() -> None:
    config = _chart(
        type="pie",
        title="Gender",
        subtitle="Fans on site",
        totalLabel="Fans",
        showTitle=False,
        showPercentages=False,
        aspectRatio="1:1",
        formatting={"rounded": True, "suffix": "%"},
        elements=[{"id": "f", "ref": "female"}],
    )

    result = calculate(config, {"female": 3})

    assert result.title == "Gender"
    assert result.subtitle == "Fans on site"
    assert result.total_label == "Fans"
    assert result.show_title is False
    assert result.show_percentages is False
    assert result.aspect_ratio == "1:1"
    assert result.formatting.suffix == "%"
    assert result.error is False


def test_dynamic_labels_use_current_statistics() -> None:
    assert resolve_label("Fans ({{totalFans}})", {"indoor": 1, "outdoor": 2}) == "Fans (N/A)"
    assert resolve_label("Fans ({{stats.fans}})", {"fans": 12}) == "Fans (12)"
    assert resolve_label("Plain", {}) == "Plain"


def test_calculation_is_deterministic() -> None:
    config = _chart(
        type="bar",
        elements=[{"id": "a", "ref": "a / (a + b)"}, {"id": "b", "ref": "b"}],
    )
    stats = {"a": 3, "b": 7}

    assert calculate(config, stats) == calculate(config, stats)
    assert calculate(config, stats).to_dict() == calculate(config, stats).to_dict()


def test_calculate_all_skips_inactive_configurations() -> None:
    configs = [
        _chart(chartId="on", elements=[{"id": "a", "ref": "a"}]),
        _chart(chartId="off", isActive=False, elements=[{"id": "a", "ref": "a"}]),
    ]

    results = calculate_all(configs, {"a": 1})

    assert list(results) == ["on"]
