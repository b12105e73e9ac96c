from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from eventstats.io.read import (
    load_chart_configurations,
    load_project_statistics,
    load_report_layout,
    load_statistics_table,
)
from eventstats.io.store import DocumentNotFoundError, FileDocumentStore, InMemoryDocumentStore
from eventstats.io.write import write_summary, write_table


def test_file_store_reads_json_and_yaml_documents(tmp_path: Path) -> None:
    (tmp_path / "chart-configurations.json").write_text(
        json.dumps([{"chartId": "kpi", "type": "KPI", "elements": [{"id": "a", "formula": "x"}]}]),
        encoding="utf-8",
    )
    (tmp_path / "project-statistics").mkdir()
    (tmp_path / "project-statistics" / "derby.yaml").write_text(
        "stats:\n  x: 5\n  female: 30\n", encoding="utf-8"
    )
    store = FileDocumentStore(tmp_path)

    configs = load_chart_configurations(store)
    stats = load_project_statistics(store, "derby")

    assert configs[0].chart_id == "kpi"
    assert configs[0].type == "kpi"
    assert configs[0].elements[0].ref == "x"
    assert stats == {"x": 5, "female": 30}


def test_layout_accepts_bare_block_lists() -> None:
    store = InMemoryDocumentStore()
    store.put(
        "report-layout",
        "derby",
        [{"id": "b1", "charts": [{"chartId": "kpi", "order": 0, "width": 2}]}],
    )

    layout = load_report_layout(store, "derby")

    assert layout.grid_settings is None
    assert layout.blocks[0].charts[0].width == 2


def test_missing_and_malformed_documents_raise(tmp_path: Path) -> None:
    store = FileDocumentStore(tmp_path)
    (tmp_path / "report-layout").mkdir()
    (tmp_path / "report-layout" / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "chart-configurations.json").write_text(
        json.dumps([{"chartId": "x", "type": "donut"}]), encoding="utf-8"
    )

    with pytest.raises(DocumentNotFoundError):
        load_project_statistics(store, "nowhere")
    with pytest.raises(ValueError, match="Malformed JSON"):
        load_report_layout(store, "broken")
    with pytest.raises(ValueError, match="index 0"):
        load_chart_configurations(store)
    with pytest.raises(FileNotFoundError):
        InMemoryDocumentStore().get("chart-configurations")


def test_statistics_table_long_and_wide_formats(tmp_path: Path) -> None:
    long_path = tmp_path / "long.csv"
    long_path.write_text("name,value\nfemale,30\nmale,70\nvisitWeb,\n", encoding="utf-8")
    wide_path = tmp_path / "wide.csv"
    wide_path.write_text("female,male,heroUrl\n30,70,https://cdn.example/a.png\n", encoding="utf-8")

    long_stats = load_statistics_table(long_path)
    wide_stats = load_statistics_table(wide_path)

    assert long_stats == {"female": 30, "male": 70}
    assert wide_stats == {"female": 30, "male": 70, "heroUrl": "https://cdn.example/a.png"}


def test_statistics_table_rejects_unknown_suffix(tmp_path: Path) -> None:
    path = tmp_path / "stats.txt"
    path.write_text("female=30", encoding="utf-8")

    with pytest.raises(ValueError, match="Unsupported"):
        load_statistics_table(path)


def test_writers_create_parent_directories(tmp_path: Path) -> None:
    summary_path = write_summary({"b": 1, "a": "N/A"}, tmp_path / "out" / "summary.json")
    table_path = write_table(pd.DataFrame({"chart_id": ["a"]}), tmp_path / "out" / "results.csv")

    assert json.loads(summary_path.read_text(encoding="utf-8")) == {"a": "N/A", "b": 1}
    assert pd.read_csv(table_path)["chart_id"].tolist() == ["a"]
    with pytest.raises(ValueError):
        write_table(pd.DataFrame(), tmp_path / "results.xlsx")
