from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import ValidationError

from eventstats.charts.models import ChartConfiguration, ReportLayout
from eventstats.io.store import (
    CHART_CONFIGURATIONS,
    PROJECT_STATISTICS,
    REPORT_LAYOUT,
    DocumentStore,
)

LONG_FORMAT_COLUMNS = ("name", "value")


def _unwrap(document: Any, key: str) -> Any:
    if isinstance(document, dict) and key in document:
        return document[key]
    return document


def load_chart_configurations(store: DocumentStore) -> list[ChartConfiguration]:
    documents = _unwrap(store.get(CHART_CONFIGURATIONS), "charts")
    if not isinstance(documents, list):
        raise ValueError(f"{CHART_CONFIGURATIONS} must be a list of chart documents")
    configs: list[ChartConfiguration] = []
    for index, document in enumerate(documents):
        try:
            configs.append(ChartConfiguration.model_validate(document))
        except ValidationError as exc:
            raise ValueError(f"Invalid chart configuration at index {index}: {exc}") from exc
    return configs


def load_project_statistics(store: DocumentStore, project_ref: str) -> dict[str, Any]:
    document = _unwrap(store.get(PROJECT_STATISTICS, project_ref), "stats")
    if not isinstance(document, dict):
        raise ValueError(f"{PROJECT_STATISTICS}/{project_ref} must be an object")
    return dict(document)


def load_report_layout(store: DocumentStore, project_ref: str) -> ReportLayout:
    document = store.get(REPORT_LAYOUT, project_ref)
    if isinstance(document, list):
        document = {"blocks": document}
    try:
        return ReportLayout.model_validate(document)
    except ValidationError as exc:
        raise ValueError(f"Invalid report layout for {project_ref}: {exc}") from exc


def _cell_value(value: Any) -> Any:
    if hasattr(value, "item"):
        value = value.item()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def load_statistics_table(path: Path) -> dict[str, Any]:
    """Statistics from a CSV or parquet table.

    Long tables carry ``name`` and ``value`` columns; anything else is read as
    a wide table whose first row holds one column per statistic.
    """
    if path.suffix == ".parquet":
        frame = pd.read_parquet(path)
    elif path.suffix == ".csv":
        frame = pd.read_csv(path, encoding="utf-8-sig")
    else:
        raise ValueError(f"Unsupported table file type: {path.suffix}")

    if frame.empty:
        return {}
    if set(LONG_FORMAT_COLUMNS).issubset(frame.columns):
        pairs = zip(frame["name"].astype(str), frame["value"])
    else:
        pairs = zip((str(column) for column in frame.columns), frame.iloc[0])
    stats: dict[str, Any] = {}
    for name, value in pairs:
        cleaned = _cell_value(value)
        if cleaned is not None:
            stats[name.strip()] = cleaned
    return stats
