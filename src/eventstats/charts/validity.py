from __future__ import annotations

from typing import Callable

from eventstats.charts.results import (
    BarResult,
    ChartResult,
    ElementsResult,
    ImageResult,
    KpiResult,
    MissingChartResult,
    PieResult,
    ScalarResult,
    TableResult,
    TextResult,
    ValueResult,
)
from eventstats.stats.resolver import coerce_number, is_na


def _kpi_is_valid(result: ChartResult) -> bool:
    if not isinstance(result, ScalarResult):
        return False
    return coerce_number(result.kpi_value) is not None


def _breakdown_is_valid(result: ChartResult) -> bool:
    if not isinstance(result, ElementsResult):
        return False
    numbers = [coerce_number(element.value) for element in result.elements]
    positive = [number for number in numbers if number is not None and number > 0]
    total = sum(number for number in numbers if number is not None)
    return bool(positive) and total > 0


def _content_is_valid(result: ChartResult) -> bool:
    if not isinstance(result, ScalarResult):
        return False
    value = result.kpi_value
    return isinstance(value, str) and bool(value.strip()) and not is_na(value)


def _value_is_valid(result: ChartResult) -> bool:
    if not isinstance(result, ValueResult):
        return False
    return _breakdown_is_valid(result.bar)


def _never_valid(result: ChartResult) -> bool:
    return False


_VALIDITY_RULES: dict[type[ChartResult], Callable[[ChartResult], bool]] = {
    KpiResult: _kpi_is_valid,
    PieResult: _breakdown_is_valid,
    BarResult: _breakdown_is_valid,
    TextResult: _content_is_valid,
    ImageResult: _content_is_valid,
    TableResult: _content_is_valid,
    ValueResult: _value_is_valid,
    MissingChartResult: _never_valid,
}


def has_valid_data(result: ChartResult | None) -> bool:
    """Whether a result has anything to show.

    The same answer decides both whether a cell is rendered and whether it
    takes part in row sizing.
    """
    if result is None or result.error:
        return False
    rule = _VALIDITY_RULES.get(type(result))
    return rule(result) if rule is not None else False
