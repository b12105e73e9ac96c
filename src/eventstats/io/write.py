from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd

TABLE_FORMATS = ("csv", "parquet")


def write_table(df: pd.DataFrame, path: Path, fmt: str | None = None) -> Path:
    """Write ``df`` as CSV or parquet; the format defaults to the path suffix."""
    fmt = fmt or path.suffix.lstrip(".") or "csv"
    if fmt not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {fmt}")
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
    return path


def write_summary(data: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8"
    )
    return path
