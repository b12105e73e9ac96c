from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping

import pandas as pd

from eventstats.charts.calculator import calculate
from eventstats.charts.formatting import display_value
from eventstats.charts.models import ChartConfiguration
from eventstats.charts.results import (
    ChartResult,
    ElementsResult,
    MissingChartResult,
    ResultElement,
    ScalarResult,
    ValueResult,
)
from eventstats.charts.validity import has_valid_data
from eventstats.stats.resolver import StatisticsRecord, coerce_number, is_na

IssueKind = Literal["missing_field", "invalid_value", "invalid_element", "type_mismatch"]
Severity = Literal["error", "warning"]

RESULTS_FRAME_COLUMNS = [
    "chart_id",
    "type",
    "valid",
    "error",
    "kpi_value",
    "display_value",
    "element_count",
    "na_elements",
    "total",
]


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    kind: IssueKind
    severity: Severity
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity,
            "message": self.message,
            "context": dict(self.context),
        }


@dataclass(slots=True, frozen=True)
class ValidationReport:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "issues": [issue.to_dict() for issue in self.issues]}


def _non_finite(value: Any) -> bool:
    return isinstance(value, float) and not math.isfinite(value)


def _element_issues(
    chart: ChartResult, elements: tuple[ResultElement, ...]
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for index, element in enumerate(elements):
        context = {"chartId": chart.chart_id, "elementIndex": index}
        if not element.label:
            issues.append(
                ValidationIssue(
                    "invalid_element",
                    "error",
                    f"Element {index} missing required field: label",
                    context,
                )
            )
        if _non_finite(element.value):
            issues.append(
                ValidationIssue(
                    "invalid_value",
                    "error",
                    f"Element {index} has invalid value: {element.value}",
                    context,
                )
            )
        number = coerce_number(element.value)
        if chart.type == "pie" and number is not None and number < 0:
            issues.append(
                ValidationIssue(
                    "invalid_value",
                    "warning",
                    f"PIE chart element {index} has negative value: {number}",
                    context,
                )
            )
    return issues


def validate_chart_result(
    result: ChartResult | None, config: ChartConfiguration | None = None
) -> ValidationReport:
    """Structural and value checks on one result, optionally against its configuration."""
    if result is None:
        return ValidationReport(
            (ValidationIssue("missing_field", "error", "Chart result is missing"),)
        )
    issues: list[ValidationIssue] = []
    context = {"chartId": result.chart_id}
    if isinstance(result, MissingChartResult):
        issues.append(ValidationIssue("missing_field", "error", result.message, context))
    if isinstance(result, ScalarResult) and _non_finite(result.kpi_value):
        issues.append(
            ValidationIssue(
                "invalid_value",
                "error",
                f"KPI chart has invalid value: {result.kpi_value}",
                context,
            )
        )
    elements: tuple[ResultElement, ...] = ()
    if isinstance(result, ElementsResult):
        elements = result.elements
    elif isinstance(result, ValueResult):
        elements = result.bar.elements
    if isinstance(result, (ElementsResult, ValueResult)) and not elements:
        issues.append(
            ValidationIssue(
                "missing_field",
                "error",
                f"{result.type} chart result missing required field: elements",
                {**context, "field": "elements"},
            )
        )
    issues.extend(_element_issues(result, elements))
    if config is not None and not result.error and result.type != config.type:
        issues.append(
            ValidationIssue(
                "type_mismatch",
                "warning",
                f"Chart result type '{result.type}' does not match "
                f"configuration type '{config.type}'",
                {**context, "expectedType": config.type, "actualType": result.type},
            )
        )
    return ValidationReport(tuple(issues))


@dataclass(slots=True, frozen=True)
class StatsCheck:
    chart_id: str
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    result: ChartResult

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "chartId": self.chart_id,
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def check_chart_with_stats(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    *,
    content_assets: Mapping[str, str] | None = None,
) -> StatsCheck:
    """Calculate one chart and report which parts of it have no data."""
    result = calculate(config, stats, content_assets=content_assets)
    errors: list[str] = []
    warnings: list[str] = []

    breakdown = result.bar if isinstance(result, ValueResult) else result
    if isinstance(breakdown, ElementsResult):
        for element in breakdown.elements:
            if is_na(element.value):
                name = element.label or element.id
                errors.append(f'Formula evaluation failed for element "{name}"')
        if is_na(breakdown.total):
            errors.append(f"Total calculation failed for {config.type} chart")
        numbers = [coerce_number(element.value) for element in breakdown.elements]
        if config.type == "pie" and numbers and all(number == 0 for number in numbers):
            warnings.append("All pie chart elements evaluate to zero - chart will not be visible")
        for element, number in zip(breakdown.elements, numbers):
            if number is not None and number < 0:
                name = element.label or element.id
                warnings.append(f'Element "{name}" has negative value: {number}')
    if isinstance(result, (ScalarResult, ValueResult)) and is_na(result.kpi_value):
        errors.append(f"No value available for {config.type} chart")

    return StatsCheck(
        chart_id=config.chart_id,
        errors=tuple(errors),
        warnings=tuple(warnings),
        result=result,
    )


def _elements_of(result: ChartResult) -> tuple[ResultElement, ...]:
    if isinstance(result, ElementsResult):
        return result.elements
    if isinstance(result, ValueResult):
        return result.bar.elements
    return ()


def calculation_summary(
    configs: Iterable[ChartConfiguration], results: Mapping[str, ChartResult]
) -> dict[str, Any]:
    configs = list(configs)
    total_elements = 0
    elements_with_errors = 0
    charts_with_errors = 0
    for result in results.values():
        elements = _elements_of(result)
        na_count = sum(1 for element in elements if is_na(element.value))
        total_elements += len(elements)
        elements_with_errors += na_count
        missing_headline = isinstance(result, ScalarResult) and is_na(result.kpi_value)
        if result.error or na_count or missing_headline:
            charts_with_errors += 1
    return {
        "total_charts": len(configs),
        "active_charts": sum(1 for config in configs if config.is_active),
        "calculated_charts": len(results),
        "valid_charts": sum(1 for result in results.values() if has_valid_data(result)),
        "charts_with_errors": charts_with_errors,
        "elements_with_errors": elements_with_errors,
        "total_elements": total_elements,
        "chart_types": dict(sorted(Counter(result.type for result in results.values()).items())),
    }


def results_frame(results: Mapping[str, ChartResult], *, na_display: str = "N/A") -> pd.DataFrame:
    """One row per chart, ready for CSV or parquet export."""
    rows: list[dict[str, Any]] = []
    for chart_id, result in results.items():
        elements = _elements_of(result)
        kpi_value = getattr(result, "kpi_value", None)
        if isinstance(result, ValueResult):
            total = result.bar.total
        else:
            total = getattr(result, "total", None)
        rows.append(
            {
                "chart_id": chart_id,
                "type": result.type,
                "valid": has_valid_data(result),
                "error": result.error,
                "kpi_value": (
                    None if kpi_value is None else display_value(kpi_value, na_display=na_display)
                ),
                "display_value": display_value(
                    kpi_value if kpi_value is not None else total,
                    result.formatting,
                    na_display=na_display,
                ),
                "element_count": len(elements),
                "na_elements": sum(1 for element in elements if is_na(element.value)),
                "total": None if total is None else display_value(total, na_display=na_display),
            }
        )
    return pd.DataFrame(rows, columns=RESULTS_FRAME_COLUMNS)
