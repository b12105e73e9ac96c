from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from eventstats.charts.calculator import calculate, calculate_all
from eventstats.charts.models import ChartConfiguration, ChartReference, ReportBlock, ReportLayout
from eventstats.charts.results import ChartResult, MissingChartResult
from eventstats.charts.validity import has_valid_data
from eventstats.config import AppConfig
from eventstats.layout.columns import pack_rows, validate_row_capacity
from eventstats.layout.height import CellConfiguration, RowLayout, solve_row
from eventstats.live.updates import StatUpdate, affected_chart_ids, apply_to_snapshot
from eventstats.report.contracts import BlockLayout, ReportView
from eventstats.stats.resolver import StatisticsRecord

LOGGER = logging.getLogger(__name__)


class ReportAssembler:
    """Joins calculation, validity filtering and row layout for one report.

    Results are cached per chart and only the charts a live update touches are
    recomputed; layout is rebuilt from the cached results on every ``build``.
    """

    def __init__(
        self,
        configs: Iterable[ChartConfiguration],
        stats: StatisticsRecord,
        layout: ReportLayout,
        *,
        config: AppConfig | None = None,
        content_assets: Mapping[str, str] | None = None,
    ) -> None:
        self.configs: dict[str, ChartConfiguration] = {}
        for chart in configs:
            if chart.chart_id in self.configs:
                LOGGER.warning(
                    "Duplicate chart id %s; keeping the first configuration", chart.chart_id
                )
                continue
            self.configs[chart.chart_id] = chart
        self.stats: dict[str, Any] = dict(stats)
        self.layout = layout
        self.config = config or AppConfig()
        self.content_assets: dict[str, str] = dict(content_assets or {})
        self._results: dict[str, ChartResult] | None = None

    @property
    def capacity(self) -> int:
        if self.layout.grid_settings is not None:
            return self.layout.grid_settings.desktop_units
        return self.config.grid.desktop_units

    @property
    def results(self) -> dict[str, ChartResult]:
        if self._results is None:
            self._results = calculate_all(
                self.configs.values(), self.stats, content_assets=self.content_assets
            )
        return self._results

    def build(self, row_width_px: float | None = None) -> ReportView:
        width = self.config.layout.default_row_width_px if row_width_px is None else row_width_px
        results = dict(self.results)
        warnings: list[str] = []
        blocks = [
            self._build_block(block, width, results, warnings)
            for block in self.layout.ordered_blocks()
        ]
        return ReportView(
            row_width_px=width,
            results=results,
            blocks=tuple(blocks),
            warnings=tuple(warnings),
        )

    def apply_update(
        self, update: StatUpdate, row_width_px: float | None = None
    ) -> tuple[list[str], ReportView]:
        """Apply a live stat change and return the recomputed chart ids with a fresh view."""
        self.stats = apply_to_snapshot(self.stats, update)
        active = [chart for chart in self.configs.values() if chart.is_active]
        recomputed = affected_chart_ids(active, update.stat_key)
        results = self.results
        for chart_id in recomputed:
            results[chart_id] = calculate(
                self.configs[chart_id], self.stats, content_assets=self.content_assets
            )
        LOGGER.info("Stat %s updated; recomputed %d chart(s)", update.stat_key, len(recomputed))
        return recomputed, self.build(row_width_px)

    def _build_block(
        self,
        block: ReportBlock,
        row_width_px: float,
        results: dict[str, ChartResult],
        warnings: list[str],
    ) -> BlockLayout:
        visible: list[ChartReference] = []
        hidden: list[str] = []
        for reference in block.ordered_charts():
            chart = self.configs.get(reference.chart_id)
            if chart is None:
                message = f"Chart configuration not found: {reference.chart_id}"
                LOGGER.warning("%s (block %s)", message, block.id or block.title)
                results[reference.chart_id] = MissingChartResult(
                    chart_id=reference.chart_id, message=message
                )
                warnings.append(message)
                hidden.append(reference.chart_id)
                continue
            if not chart.is_active or not has_valid_data(results.get(reference.chart_id)):
                hidden.append(reference.chart_id)
                continue
            visible.append(reference)

        rows: list[RowLayout] = []
        cells = [self._cell(reference, results) for reference in visible]
        for row in pack_rows(cells, self.capacity):
            check = validate_row_capacity(row, self.capacity)
            if not check.valid and check.error:
                warnings.append(check.error)
            rows.append(solve_row(row, row_width_px, self.config.layout))
        return BlockLayout(
            block_id=block.id,
            title=block.title,
            show_title=block.show_title,
            rows=tuple(rows),
            hidden_chart_ids=tuple(hidden),
        )

    def _cell(
        self, reference: ChartReference, results: Mapping[str, ChartResult]
    ) -> CellConfiguration:
        chart = self.configs[reference.chart_id]
        result = results[reference.chart_id]
        # The block's width wins when the layout sets one explicitly.
        width = reference.width if "width" in reference.model_fields_set else chart.width
        return CellConfiguration(
            chart_id=chart.chart_id,
            cell_width=width,
            body_type=chart.type,
            aspect_ratio=result.aspect_ratio,
            has_title=chart.show_title and bool(chart.title),
            has_subtitle=bool(chart.subtitle),
        )
