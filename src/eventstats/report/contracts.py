from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from eventstats.charts.results import ChartResult
from eventstats.layout.height import RowLayout


@dataclass(slots=True, frozen=True)
class BlockLayout:
    block_id: str
    title: str
    show_title: bool
    rows: tuple[RowLayout, ...] = ()
    hidden_chart_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rows", tuple(self.rows))
        object.__setattr__(self, "hidden_chart_ids", tuple(self.hidden_chart_ids))

    @property
    def chart_ids(self) -> list[str]:
        return [cell.chart_id for row in self.rows for cell in row.cells]

    def to_dict(self) -> dict[str, Any]:
        return {
            "blockId": self.block_id,
            "title": self.title,
            "showTitle": self.show_title,
            "rows": [row.to_dict() for row in self.rows],
            "hiddenChartIds": list(self.hidden_chart_ids),
        }


@dataclass(slots=True, frozen=True)
class ReportView:
    """Everything a rendering surface needs to paint one report."""

    row_width_px: float
    results: dict[str, ChartResult] = field(default_factory=dict)
    blocks: tuple[BlockLayout, ...] = ()
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.row_width_px < 0:
            raise ValueError("row_width_px must be >= 0.")
        object.__setattr__(self, "blocks", tuple(self.blocks))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def rendered_chart_ids(self) -> list[str]:
        return [chart_id for block in self.blocks for chart_id in block.chart_ids]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowWidthPx": self.row_width_px,
            "results": {chart_id: result.to_dict() for chart_id, result in self.results.items()},
            "blocks": [block.to_dict() for block in self.blocks],
            "warnings": list(self.warnings),
        }
