from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from eventstats.charts.formatting import display_value, format_percentage
from eventstats.charts.results import ChartResult, ElementsResult, ScalarResult, ValueResult
from eventstats.config import DisplayConfig
from eventstats.layout.height import CellLayout
from eventstats.report.contracts import ReportView


def _template_env() -> Environment:
    templates_path = Path(__file__).resolve().parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(templates_path)),
        autoescape=select_autoescape(enabled_extensions=("html", "xml", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    return value


def _element_rows(result: ElementsResult, na_display: str) -> list[dict[str, Any]]:
    rounded = result.formatting.rounded
    return [
        {
            "label": element.label or element.id,
            "color": element.color,
            "value": display_value(element.value, result.formatting, na_display=na_display),
            "percentage": (
                None
                if element.percentage is None or not result.show_percentages
                else format_percentage(element.percentage, rounded=rounded)
            ),
        }
        for element in result.elements
    ]


def _cell_context(result: ChartResult, layout: CellLayout, na_display: str) -> dict[str, Any]:
    context: dict[str, Any] = {
        "chart_id": result.chart_id,
        "type": result.type,
        "title": result.title if result.show_title else "",
        "subtitle": result.subtitle or "",
        "height_px": round(layout.height_px, 2),
        "body_height_px": round(layout.body_height_px, 2),
        "headline": None,
        "content": None,
        "elements": [],
    }
    if isinstance(result, ValueResult):
        context["headline"] = display_value(
            result.kpi_value, result.formatting, na_display=na_display
        )
        context["elements"] = _element_rows(result.bar, na_display)
    elif isinstance(result, ElementsResult):
        context["elements"] = _element_rows(result, na_display)
        if result.total_label:
            context["headline"] = display_value(
                result.total, result.formatting, na_display=na_display
            )
    elif isinstance(result, ScalarResult) and result.type == "kpi":
        context["headline"] = display_value(
            result.kpi_value, result.formatting, na_display=na_display
        )
    elif isinstance(result, ScalarResult):
        context["content"] = display_value(result.kpi_value, na_display=na_display)
    return context


def build_render_context(
    view: ReportView, display: DisplayConfig | None = None
) -> list[dict[str, Any]]:
    na_display = (display or DisplayConfig()).na_display
    blocks: list[dict[str, Any]] = []
    for block in view.blocks:
        rows = [
            {
                "grid_template_columns": row.template,
                "height_px": round(row.height_px, 2),
                "cells": [
                    _cell_context(view.results[cell.chart_id], cell, na_display)
                    for cell in row.cells
                ],
            }
            for row in block.rows
        ]
        if not rows:
            continue
        blocks.append(
            {
                "id": block.block_id,
                "title": block.title if block.show_title else "",
                "rows": rows,
            }
        )
    return blocks


def render_report(
    view: ReportView,
    out_dir: Path,
    *,
    title: str = "Event report",
    display: DisplayConfig | None = None,
) -> Path:
    report_started = perf_counter()
    generated_at = datetime.now(timezone.utc).isoformat()
    template = _template_env().get_template("report.html.j2")

    context_started = perf_counter()
    blocks = build_render_context(view, display)
    context_build_ms = round((perf_counter() - context_started) * 1000.0, 3)

    template_started = perf_counter()
    rendered = template.render(
        generated_at=generated_at,
        title=title,
        blocks=blocks,
        warnings=list(view.warnings),
    )
    template_render_ms = round((perf_counter() - template_started) * 1000.0, 3)

    report_path = out_dir / "report.html"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    write_started = perf_counter()
    report_path.write_text(rendered, encoding="utf-8")
    report_write_ms = round((perf_counter() - write_started) * 1000.0, 3)

    artifacts_dir = out_dir / "artifacts"
    artifacts_dir.mkdir(parents=True, exist_ok=True)
    (artifacts_dir / "report_view.json").write_text(
        json.dumps(_json_safe(view.to_dict()), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    runtime_metrics = {
        "generated_at": generated_at,
        "context_build_ms": context_build_ms,
        "template_render_ms": template_render_ms,
        "report_write_ms": report_write_ms,
        "report_total_ms": round((perf_counter() - report_started) * 1000.0, 3),
        "report_html_bytes": int(report_path.stat().st_size),
        "rendered_charts": len(view.rendered_chart_ids),
    }
    (artifacts_dir / "report_runtime.json").write_text(
        json.dumps(_json_safe(runtime_metrics), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return report_path
