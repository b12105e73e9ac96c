from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

DATA_DIR_ENV_VAR = "EVENTSTATS_DATA_DIR"


class LayoutConfig(BaseModel):
    default_row_width_px: float = Field(default=1200.0, gt=0.0)
    cell_padding_px: float = Field(default=0.0, ge=0.0)
    title_reservation_px: float = Field(default=40.0, ge=0.0)
    subtitle_reservation_px: float = Field(default=24.0, ge=0.0)
    min_row_height_px: float = Field(default=96.0, ge=0.0)
    default_image_aspect_ratio: str = "16:9"


class ResponsiveConfig(BaseModel):
    wrap_breakpoint_px: int = Field(default=1024, ge=1)
    stack_breakpoint_px: int = Field(default=640, ge=1)
    min_cell_width_px: int = Field(default=280, ge=1)
    resize_debounce_ms: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _check_breakpoints(self) -> ResponsiveConfig:
        if self.stack_breakpoint_px > self.wrap_breakpoint_px:
            raise ValueError("stack_breakpoint_px must be <= wrap_breakpoint_px")
        return self


class GridConfig(BaseModel):
    desktop_units: int = Field(default=4, ge=1)
    tablet_units: int = Field(default=2, ge=1)
    mobile_units: int = Field(default=1, ge=1)


class DisplayConfig(BaseModel):
    na_display: str = "N/A"


class StoreConfig(BaseModel):
    data_dir: str | None = None


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    responsive: ResponsiveConfig = Field(default_factory=ResponsiveConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _resolve_optional_path(path_value: str | None, base_dir: Path) -> str | None:
    if not path_value:
        return None
    candidate = Path(path_value)
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    base_dir = path.resolve().parent

    config.store.data_dir = _resolve_optional_path(
        config.store.data_dir, base_dir
    ) or os.getenv(DATA_DIR_ENV_VAR)
    return config


def load_config_or_default(path: Path | None) -> AppConfig:
    if path is None:
        config = AppConfig()
        config.store.data_dir = os.getenv(DATA_DIR_ENV_VAR)
        return config
    return load_config(path)
