from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from eventstats.charts.models import Formatting
from eventstats.stats.resolver import NA, NotAvailable, Number, ResolvedValue


def _formatting_dict(formatting: Formatting) -> dict[str, Any]:
    return {
        "rounded": formatting.rounded,
        "prefix": formatting.prefix,
        "suffix": formatting.suffix,
        "decimals": formatting.decimals,
    }


@dataclass(slots=True, frozen=True)
class ResultElement:
    id: str
    label: str
    value: Number | NotAvailable
    color: str
    percentage: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "value": self.value,
            "color": self.color,
            "percentage": self.percentage,
        }


@dataclass(slots=True, frozen=True, kw_only=True)
class ChartResult:
    """Fields every calculated chart echoes from its configuration."""

    type: ClassVar[str] = ""
    error: ClassVar[bool] = False

    chart_id: str
    title: str = ""
    subtitle: str | None = None
    formatting: Formatting = field(default_factory=Formatting)
    aspect_ratio: str | None = None
    show_title: bool = True

    def __post_init__(self) -> None:
        if not self.chart_id.strip():
            raise ValueError("chart_id must be non-empty.")

    def _common_dict(self) -> dict[str, Any]:
        return {
            "chartId": self.chart_id,
            "type": self.type,
            "title": self.title,
            "subtitle": self.subtitle,
            "formatting": _formatting_dict(self.formatting),
            "aspectRatio": self.aspect_ratio,
            "showTitle": self.show_title,
            "error": self.error,
        }

    def to_dict(self) -> dict[str, Any]:
        return self._common_dict()


@dataclass(slots=True, frozen=True, kw_only=True)
class ScalarResult(ChartResult):
    kpi_value: ResolvedValue | NotAvailable = NA

    def to_dict(self) -> dict[str, Any]:
        payload = self._common_dict()
        payload["kpiValue"] = self.kpi_value
        return payload


@dataclass(slots=True, frozen=True, kw_only=True)
class KpiResult(ScalarResult):
    type: ClassVar[str] = "kpi"


@dataclass(slots=True, frozen=True, kw_only=True)
class TextResult(ScalarResult):
    type: ClassVar[str] = "text"


@dataclass(slots=True, frozen=True, kw_only=True)
class ImageResult(ScalarResult):
    type: ClassVar[str] = "image"


@dataclass(slots=True, frozen=True, kw_only=True)
class TableResult(ScalarResult):
    type: ClassVar[str] = "table"


@dataclass(slots=True, frozen=True, kw_only=True)
class ElementsResult(ChartResult):
    elements: tuple[ResultElement, ...] = ()
    total: Number | NotAvailable = NA
    total_label: str | None = None
    show_percentages: bool = True

    def __post_init__(self) -> None:
        ChartResult.__post_init__(self)
        object.__setattr__(self, "elements", tuple(self.elements))

    def to_dict(self) -> dict[str, Any]:
        payload = self._common_dict()
        payload["elements"] = [element.to_dict() for element in self.elements]
        payload["total"] = self.total
        payload["totalLabel"] = self.total_label
        payload["showPercentages"] = self.show_percentages
        return payload


@dataclass(slots=True, frozen=True, kw_only=True)
class PieResult(ElementsResult):
    type: ClassVar[str] = "pie"


@dataclass(slots=True, frozen=True, kw_only=True)
class BarResult(ElementsResult):
    type: ClassVar[str] = "bar"


@dataclass(slots=True, frozen=True, kw_only=True)
class ValueResult(ChartResult):
    """Composite of a KPI headline and a bar breakdown from one configuration."""

    type: ClassVar[str] = "value"

    kpi: KpiResult
    bar: BarResult

    @property
    def kpi_value(self) -> ResolvedValue | NotAvailable:
        return self.kpi.kpi_value

    @property
    def elements(self) -> tuple[ResultElement, ...]:
        return self.bar.elements

    def to_dict(self) -> dict[str, Any]:
        payload = self._common_dict()
        payload["kpiValue"] = self.kpi.kpi_value
        payload["elements"] = [element.to_dict() for element in self.bar.elements]
        payload["total"] = self.bar.total
        return payload


@dataclass(slots=True, frozen=True, kw_only=True)
class MissingChartResult(ChartResult):
    """Marker for a referenced chart id with no matching configuration."""

    type: ClassVar[str] = "missing"
    error: ClassVar[bool] = True

    message: str = "Chart configuration not found"

    def to_dict(self) -> dict[str, Any]:
        payload = self._common_dict()
        payload["message"] = self.message
        return payload
