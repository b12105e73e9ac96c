from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Mapping

from eventstats.charts.formatting import percentage
from eventstats.charts.models import ChartConfiguration, ChartElement
from eventstats.charts.results import (
    BarResult,
    ChartResult,
    ElementsResult,
    ImageResult,
    KpiResult,
    PieResult,
    ResultElement,
    TableResult,
    TextResult,
    ValueResult,
)
from eventstats.stats.resolver import (
    NA,
    NotAvailable,
    ResolvedValue,
    StatResolver,
    StatisticsRecord,
    coerce_number,
    is_na,
    is_simple_reference,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_IMAGE_ASPECT_RATIO = "16:9"
LABEL_PLACEHOLDER = re.compile(r"\{\{\s*(?:stats\.)?([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
MISSING_LABEL_VALUE = "N/A"


def _resolver(
    stats: StatisticsRecord,
    element: ChartElement | None,
    content_assets: Mapping[str, str],
) -> StatResolver:
    if element is None:
        return StatResolver(stats=stats, content_assets=content_assets)
    return StatResolver(
        stats=stats,
        parameters=element.parameters,
        manual=element.manual_data,
        content_assets=content_assets,
    )


def resolve_label(label: str, stats: StatisticsRecord) -> str:
    """Replace ``{{name}}`` placeholders with the current statistic value."""
    if "{{" not in label:
        return label
    resolver = StatResolver(stats=stats)

    def _replace(match: re.Match[str]) -> str:
        value = resolver.lookup(match.group(1))
        return MISSING_LABEL_VALUE if is_na(value) else str(value)

    return LABEL_PLACEHOLDER.sub(_replace, label)


def _echo(config: ChartConfiguration) -> dict[str, Any]:
    return {
        "chart_id": config.chart_id,
        "title": config.title,
        "subtitle": config.subtitle,
        "formatting": config.formatting,
        "aspect_ratio": config.aspect_ratio,
        "show_title": config.show_title,
    }


def _headline(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ResolvedValue | NotAvailable:
    first = config.elements[0] if config.elements else None
    if config.formula:
        return _resolver(stats, first, content_assets).resolve(config.formula)
    if first is None:
        return NA
    return _resolver(stats, first, content_assets).resolve(first.ref)


def _kpi(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> KpiResult:
    value = _headline(config, stats, content_assets)
    if isinstance(value, str) and not is_na(value):
        # Numeric headline required; strings that parse as numbers are kept.
        number = coerce_number(value)
        value = NA if number is None else number
    return KpiResult(kpi_value=value, **_echo(config))


def _elements(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> tuple[tuple[ResultElement, ...], float | int | NotAvailable]:
    resolved: list[tuple[ChartElement, float | int | NotAvailable]] = []
    for element in config.elements:
        raw = _resolver(stats, element, content_assets).resolve(element.ref)
        number = coerce_number(raw)
        resolved.append((element, NA if number is None else number))

    numbers = [value for _, value in resolved if not is_na(value)]
    total: float | int | NotAvailable = sum(numbers) if numbers else NA
    rounded = config.formatting.rounded
    elements = tuple(
        ResultElement(
            id=element.id,
            label=resolve_label(element.label, stats),
            value=value,
            color=element.color,
            percentage=None if is_na(total) else percentage(value, total, rounded=rounded),
        )
        for element, value in resolved
    )
    return elements, total


def _breakdown(
    result_type: type[ElementsResult],
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ElementsResult:
    elements, total = _elements(config, stats, content_assets)
    return result_type(
        elements=elements,
        total=total,
        total_label=config.total_label,
        show_percentages=config.show_percentages,
        **_echo(config),
    )


def _pie(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ElementsResult:
    return _breakdown(PieResult, config, stats, content_assets)


def _bar(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ElementsResult:
    return _breakdown(BarResult, config, stats, content_assets)


def _text_content(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> str | NotAvailable:
    value = _headline(config, stats, content_assets)
    if is_na(value):
        return NA
    if isinstance(value, str):
        return value
    # Numbers only read as content when they come from a plain variable lookup.
    expression = config.formula or (config.elements[0].ref if config.elements else "")
    return str(value) if is_simple_reference(expression) else NA


def _text(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> TextResult:
    return TextResult(kpi_value=_text_content(config, stats, content_assets), **_echo(config))


def _table(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> TableResult:
    return TableResult(kpi_value=_text_content(config, stats, content_assets), **_echo(config))


def _image(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ImageResult:
    value = _headline(config, stats, content_assets)
    fields = _echo(config)
    fields["aspect_ratio"] = config.aspect_ratio or DEFAULT_IMAGE_ASPECT_RATIO
    return ImageResult(kpi_value=value if isinstance(value, str) else NA, **fields)


def _value(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    content_assets: Mapping[str, str],
) -> ValueResult:
    kpi = _kpi(config, stats, content_assets)
    bar = _breakdown(BarResult, config, stats, content_assets)
    return ValueResult(kpi=kpi, bar=bar, **_echo(config))


_CALCULATORS: dict[
    str, Callable[[ChartConfiguration, StatisticsRecord, Mapping[str, str]], ChartResult]
] = {
    "kpi": _kpi,
    "pie": _pie,
    "bar": _bar,
    "text": _text,
    "image": _image,
    "table": _table,
    "value": _value,
}


def calculate(
    config: ChartConfiguration,
    stats: StatisticsRecord,
    *,
    content_assets: Mapping[str, str] | None = None,
) -> ChartResult:
    result = _CALCULATORS[config.type](config, stats, content_assets or {})
    LOGGER.debug("Calculated chart %s (%s)", config.chart_id, config.type)
    return result


def calculate_all(
    configs: Iterable[ChartConfiguration],
    stats: StatisticsRecord,
    *,
    content_assets: Mapping[str, str] | None = None,
) -> dict[str, ChartResult]:
    """Results keyed by chart id for every active configuration, in input order."""
    results: dict[str, ChartResult] = {}
    for config in configs:
        if not config.is_active:
            LOGGER.debug("Skipping inactive chart %s", config.chart_id)
            continue
        results[config.chart_id] = calculate(config, stats, content_assets=content_assets)
    return results
