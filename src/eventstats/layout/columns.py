from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Sequence, TypeVar

import numpy as np

from eventstats.config import GridConfig, ResponsiveConfig

LOGGER = logging.getLogger(__name__)

PolicyMode = Literal["proportional", "wrap", "stack"]
T = TypeVar("T")


def _weight(cell: Any) -> float:
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        raw = cell
    else:
        raw = getattr(cell, "cell_width", None)
        if raw is None:
            raw = getattr(cell, "width", None)
    if raw is None or isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return 1.0
    if not math.isfinite(raw) or raw <= 0:
        return 1.0
    return float(raw)


def column_weights(cells: Iterable[Any]) -> list[float]:
    """Width weights for ``cells``; anything missing or non-positive counts as 1."""
    return [_weight(cell) for cell in cells]


def compose_columns(cells: Iterable[Any]) -> list[float]:
    """Proportional column shares for a row, summing to 1.

    ``cells`` may hold plain width weights or objects exposing ``cell_width``
    or ``width``. An empty row yields a single full-width column.
    """
    weights = np.asarray(column_weights(cells), dtype=float)
    if weights.size == 0:
        return [1.0]
    shares = weights / weights.sum()
    return [float(share) for share in shares]


def grid_template_columns(cells: Iterable[Any]) -> str:
    weights = column_weights(cells)
    if not weights:
        return "1fr"
    return " ".join(f"{weight:g}fr" for weight in weights)


@dataclass(slots=True, frozen=True)
class ColumnPolicy:
    mode: PolicyMode
    columns: int
    shares: tuple[float, ...]
    template: str

    def __post_init__(self) -> None:
        if self.columns < 1:
            raise ValueError("columns must be >= 1.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "columns": self.columns,
            "shares": list(self.shares),
            "gridTemplateColumns": self.template,
        }


def column_policy(
    cells: Sequence[Any],
    viewport_px: float,
    settings: ResponsiveConfig | None = None,
    grid: GridConfig | None = None,
) -> ColumnPolicy:
    """Presentation policy for a row at a given viewport width.

    Proportional shares above the wrap breakpoint, equal wrapping columns of at
    least ``min_cell_width_px`` between breakpoints, a single column below the
    stack breakpoint.
    """
    settings = settings or ResponsiveConfig()
    grid = grid or GridConfig()
    count = max(len(cells), 1)

    if viewport_px >= settings.wrap_breakpoint_px:
        return ColumnPolicy(
            mode="proportional",
            columns=count,
            shares=tuple(compose_columns(cells)),
            template=grid_template_columns(cells),
        )
    if viewport_px >= settings.stack_breakpoint_px:
        fit = max(1, int(viewport_px // settings.min_cell_width_px))
        columns = min(grid.tablet_units, fit, count)
        return ColumnPolicy(
            mode="wrap",
            columns=columns,
            shares=tuple([1.0 / columns] * columns),
            template=f"repeat({columns}, 1fr)",
        )
    columns = min(grid.mobile_units, count)
    return ColumnPolicy(
        mode="stack",
        columns=columns,
        shares=tuple([1.0 / columns] * columns),
        template="1fr" if columns == 1 else f"repeat({columns}, 1fr)",
    )


@dataclass(slots=True, frozen=True)
class CapacityCheck:
    valid: bool
    total_units: float
    capacity: int
    error: str | None = None


def validate_row_capacity(cells: Iterable[Any], capacity: int = 4) -> CapacityCheck:
    total = sum(column_weights(cells))
    if total > capacity:
        return CapacityCheck(
            valid=False,
            total_units=total,
            capacity=capacity,
            error=(
                f"Row capacity exceeded: sum of chart widths ({total:g}) "
                f"exceeds maximum ({capacity} units)"
            ),
        )
    return CapacityCheck(valid=True, total_units=total, capacity=capacity)


def pack_rows(items: Sequence[T], capacity: int = 4) -> list[list[T]]:
    """Greedily split ordered items into rows whose width weights fit ``capacity``.

    An item wider than the capacity still gets a row of its own.
    """
    rows: list[list[T]] = []
    current: list[T] = []
    used = 0.0
    for item in items:
        weight = _weight(item)
        if current and used + weight > capacity:
            rows.append(current)
            current, used = [], 0.0
        current.append(item)
        used += weight
        if weight > capacity:
            check = validate_row_capacity(current, capacity)
            LOGGER.warning("%s", check.error)
    if current:
        rows.append(current)
    return rows
