from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable

from eventstats.charts.models import ASPECT_RATIO_TYPES
from eventstats.config import LayoutConfig
from eventstats.layout.columns import compose_columns, grid_template_columns

LOGGER = logging.getLogger(__name__)

_ASPECT_RATIO = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)\s*$")
FALLBACK_ASPECT_RATIO = 1.0


def parse_aspect_ratio(value: str | None) -> float | None:
    """Width divided by height for a ``"W:H"`` string.

    ``None`` means the cell has no fixed ratio. Malformed strings fall back
    to 1:1.
    """
    if value is None:
        return None
    match = _ASPECT_RATIO.match(value)
    if match is not None:
        width, height = float(match.group(1)), float(match.group(2))
        if width > 0 and height > 0:
            return width / height
    LOGGER.warning("Malformed aspect ratio %r; using 1:1", value)
    return FALLBACK_ASPECT_RATIO


@dataclass(slots=True, frozen=True)
class CellConfiguration:
    chart_id: str
    cell_width: int = 1
    body_type: str = "kpi"
    aspect_ratio: str | None = None
    has_title: bool = False
    has_subtitle: bool = False

    def __post_init__(self) -> None:
        if not self.chart_id:
            raise ValueError("chart_id must be non-empty.")
        if self.cell_width < 1:
            raise ValueError("cell_width must be >= 1.")


@dataclass(slots=True, frozen=True)
class CellLayout:
    chart_id: str
    height_px: float
    body_height_px: float
    column_share: float
    width_px: float
    aspect_constrained: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "chartId": self.chart_id,
            "heightPx": self.height_px,
            "bodyHeightPx": self.body_height_px,
            "columnShare": self.column_share,
            "widthPx": self.width_px,
            "aspectConstrained": self.aspect_constrained,
        }


@dataclass(slots=True, frozen=True)
class RowLayout:
    row_width_px: float
    height_px: float
    cells: tuple[CellLayout, ...]
    template: str = "1fr"

    @property
    def column_shares(self) -> list[float]:
        return [cell.column_share for cell in self.cells]

    def cell(self, chart_id: str) -> CellLayout | None:
        for cell in self.cells:
            if cell.chart_id == chart_id:
                return cell
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowWidthPx": self.row_width_px,
            "rowHeightPx": self.height_px,
            "columnShares": self.column_shares,
            "gridTemplateColumns": self.template,
            "cells": [cell.to_dict() for cell in self.cells],
        }


@dataclass(slots=True, frozen=True)
class _SolverSettings:
    cell_padding_px: float
    title_reservation_px: float
    subtitle_reservation_px: float
    min_row_height_px: float
    default_image_aspect_ratio: str

    @classmethod
    def from_config(cls, config: LayoutConfig) -> _SolverSettings:
        return cls(
            cell_padding_px=config.cell_padding_px,
            title_reservation_px=config.title_reservation_px,
            subtitle_reservation_px=config.subtitle_reservation_px,
            min_row_height_px=config.min_row_height_px,
            default_image_aspect_ratio=config.default_image_aspect_ratio,
        )


def _cell_ratio(cell: CellConfiguration, settings: _SolverSettings) -> float | None:
    body_type = cell.body_type.lower()
    if body_type not in ASPECT_RATIO_TYPES:
        return None
    if cell.aspect_ratio:
        return parse_aspect_ratio(cell.aspect_ratio)
    if body_type == "image":
        return parse_aspect_ratio(settings.default_image_aspect_ratio)
    return None


def _reservation(cell: CellConfiguration, settings: _SolverSettings) -> float:
    reserved = 0.0
    if cell.has_title:
        reserved += settings.title_reservation_px
    if cell.has_subtitle:
        reserved += settings.subtitle_reservation_px
    return reserved


@lru_cache(maxsize=512)
def _solve(
    cells: tuple[CellConfiguration, ...],
    row_width_px: float,
    settings: _SolverSettings,
) -> RowLayout:
    if not math.isfinite(row_width_px) or row_width_px < 0:
        LOGGER.debug("Row width %r treated as 0", row_width_px)
        row_width_px = 0.0

    shares = compose_columns(cells) if cells else []
    widths = [row_width_px * share for share in shares]
    ratios = [_cell_ratio(cell, settings) for cell in cells]
    reservations = [_reservation(cell, settings) for cell in cells]

    candidates = [settings.min_row_height_px + reserved for reserved in reservations]
    for width, ratio, reserved in zip(widths, ratios, reservations):
        if ratio is None:
            continue
        body_width = max(0.0, width - settings.cell_padding_px)
        candidates.append(body_width / ratio + reserved)
    row_height = max(candidates, default=settings.min_row_height_px)

    layouts = tuple(
        CellLayout(
            chart_id=cell.chart_id,
            height_px=row_height,
            body_height_px=max(0.0, row_height - reserved),
            column_share=share,
            width_px=width,
            aspect_constrained=ratio is not None,
        )
        for cell, share, width, ratio, reserved in zip(
            cells, shares, widths, ratios, reservations
        )
    )
    return RowLayout(
        row_width_px=row_width_px,
        height_px=row_height,
        cells=layouts,
        template=grid_template_columns(cells),
    )


def solve_row(
    cells: Iterable[CellConfiguration],
    row_width_px: float,
    settings: LayoutConfig | None = None,
) -> RowLayout:
    """Shared height and per-cell geometry for one row of valid cells.

    Cells with a fixed aspect ratio set the height their width demands; the
    tallest wins, floored at the minimum usable height, and every other cell
    takes that height. Title and subtitle space is reserved per cell from
    fixed constants.
    """
    return _solve(
        tuple(cells),
        float(row_width_px),
        _SolverSettings.from_config(settings or LayoutConfig()),
    )


def solve_height(
    cells: Iterable[CellConfiguration],
    row_width_px: float,
    settings: LayoutConfig | None = None,
) -> float:
    return solve_row(cells, row_width_px, settings).height_px
