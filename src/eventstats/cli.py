from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer

from eventstats.charts.diagnostics import (
    calculation_summary,
    check_chart_with_stats,
    results_frame,
    validate_chart_result,
)
from eventstats.charts.models import ChartConfiguration, ReportLayout
from eventstats.config import DEFAULT_CONFIG_PATH, AppConfig, load_config_or_default
from eventstats.io.read import (
    load_chart_configurations,
    load_project_statistics,
    load_report_layout,
    load_statistics_table,
)
from eventstats.io.store import FileDocumentStore
from eventstats.io.write import write_summary, write_table
from eventstats.logging import configure_logging
from eventstats.report.assembler import ReportAssembler
from eventstats.report.render import render_report
from eventstats.stats.resolver import validate_formula

app = typer.Typer(no_args_is_help=True, add_completion=False)


@dataclass
class _Inputs:
    config: AppConfig
    store: FileDocumentStore
    charts: list[ChartConfiguration]
    stats: dict[str, Any]


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=1)


def _load_inputs(
    project: str,
    data_dir: Path | None,
    config_path: Path | None,
    stats_table: Path | None,
) -> _Inputs:
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    cfg = load_config_or_default(config_path)
    root = data_dir or (Path(cfg.store.data_dir) if cfg.store.data_dir else None)
    if root is None:
        raise typer.BadParameter(
            "Missing --data-dir. Set store.data_dir in the config or EVENTSTATS_DATA_DIR."
        )
    store = FileDocumentStore(root)
    try:
        charts = load_chart_configurations(store)
        if stats_table is not None:
            stats = load_statistics_table(stats_table)
        else:
            stats = load_project_statistics(store, project)
    except (FileNotFoundError, ValueError) as exc:
        raise _fail(str(exc)) from exc
    return _Inputs(config=cfg, store=store, charts=charts, stats=stats)


def _load_layout(inputs: _Inputs, project: str) -> ReportLayout:
    try:
        return load_report_layout(inputs.store, project)
    except (FileNotFoundError, ValueError) as exc:
        raise _fail(str(exc)) from exc


def _assembler(inputs: _Inputs, layout: ReportLayout) -> ReportAssembler:
    return ReportAssembler(inputs.charts, inputs.stats, layout, config=inputs.config)


@app.command()
def calculate(
    project: str = typer.Option(..., help="Project reference whose statistics are used."),
    data_dir: Path | None = typer.Option(None, exists=True, file_okay=False, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    stats_table: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    out: Path | None = typer.Option(None, resolve_path=True, help="Write results JSON here."),
    table: Path | None = typer.Option(
        None, resolve_path=True, help="Also export a CSV/parquet table."
    ),
) -> None:
    configure_logging()
    inputs = _load_inputs(project, data_dir, config, stats_table)
    results = _assembler(inputs, ReportLayout()).results
    payload = {
        "results": {chart_id: result.to_dict() for chart_id, result in results.items()},
        "summary": calculation_summary(inputs.charts, results),
    }
    if table is not None:
        write_table(results_frame(results, na_display=inputs.config.display.na_display), table)
    if out is None:
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return
    write_summary(payload, out)
    typer.echo(f"Calculated {len(results)} chart(s). Results: {out}")


@app.command()
def layout(
    project: str = typer.Option(...),
    width: float | None = typer.Option(None, min=0.0, help="Row width in pixels."),
    data_dir: Path | None = typer.Option(None, exists=True, file_okay=False, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    stats_table: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    configure_logging()
    inputs = _load_inputs(project, data_dir, config, stats_table)
    view = _assembler(inputs, _load_layout(inputs, project)).build(width)
    payload = {
        "rowWidthPx": view.row_width_px,
        "blocks": [block.to_dict() for block in view.blocks],
        "warnings": list(view.warnings),
    }
    typer.echo(json.dumps(payload, indent=2))


@app.command()
def render(
    project: str = typer.Option(...),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    width: float | None = typer.Option(None, min=0.0),
    title: str = typer.Option("Event report"),
    data_dir: Path | None = typer.Option(None, exists=True, file_okay=False, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    stats_table: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    configure_logging()
    inputs = _load_inputs(project, data_dir, config, stats_table)
    view = _assembler(inputs, _load_layout(inputs, project)).build(width)
    report_path = render_report(view, out, title=title, display=inputs.config.display)
    typer.echo(f"Report written to: {report_path}")


@app.command()
def check(
    project: str = typer.Option(...),
    strict: bool = typer.Option(False, help="Exit non-zero when any chart has errors."),
    data_dir: Path | None = typer.Option(None, exists=True, file_okay=False, resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
    stats_table: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    configure_logging()
    inputs = _load_inputs(project, data_dir, config, stats_table)
    failing = 0
    for chart in inputs.charts:
        if not chart.is_active:
            continue
        outcome = check_chart_with_stats(chart, inputs.stats)
        report = validate_chart_result(outcome.result, chart)
        errors = list(outcome.errors) + [issue.message for issue in report.errors]
        warnings = list(outcome.warnings) + [issue.message for issue in report.warnings]
        status = "ok" if not errors else "error"
        failing += bool(errors)
        typer.echo(f"{chart.chart_id} [{chart.type}]: {status}")
        for message in errors:
            typer.echo(f"  error: {message}")
        for message in warnings:
            typer.echo(f"  warning: {message}")
    typer.echo(f"Checked charts; {failing} with errors.")
    if strict and failing:
        raise typer.Exit(code=1)


@app.command("validate-formula")
def validate_formula_command(formula: str = typer.Argument(...)) -> None:
    configure_logging()
    outcome = validate_formula(formula)
    typer.echo(
        json.dumps(
            {
                "isValid": outcome.is_valid,
                "usedVariables": list(outcome.used_variables),
                "error": outcome.error,
                "evaluatedResult": outcome.evaluated_result,
            },
            indent=2,
        )
    )
    if not outcome.is_valid:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
