from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ChartType = Literal["kpi", "pie", "bar", "text", "image", "table", "value"]

# Chart types whose cells may carry a fixed width:height ratio inside a block.
ASPECT_RATIO_TYPES: frozenset[str] = frozenset({"image", "text", "table", "bar"})


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class Formatting(_Document):
    rounded: bool | None = None
    prefix: str = ""
    suffix: str = ""
    decimals: int | None = Field(default=None, ge=0, le=10)

    @field_validator("prefix", "suffix", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ChartElement(_Document):
    id: str = "unknown"
    label: str = ""
    ref: str | float | int | None = Field(
        default=None, validation_alias=AliasChoices("ref", "formula", "value")
    )
    color: str = "#cccccc"
    parameters: dict[str, Any] = Field(default_factory=dict)
    manual_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def _flatten_parameters(cls, value: Any) -> Any:
        # Editor payloads store parameters as {"key": {"value": 10, "label": ...}}.
        if not isinstance(value, dict):
            return {} if value is None else value
        return {
            key: item.get("value") if isinstance(item, dict) else item
            for key, item in value.items()
        }


class ChartConfiguration(_Document):
    chart_id: str = Field(min_length=1)
    type: ChartType
    title: str = ""
    subtitle: str | None = None
    total_label: str | None = None
    elements: tuple[ChartElement, ...] = ()
    formula: str | None = None
    formatting: Formatting = Field(default_factory=Formatting)
    show_title: bool = True
    show_percentages: bool = True
    aspect_ratio: str | None = None
    width: int = Field(default=1, ge=1)
    is_active: bool = Field(default=True, validation_alias=AliasChoices("isActive", "active"))

    @field_validator("type", mode="before")
    @classmethod
    def _lowercase_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("formatting", mode="before")
    @classmethod
    def _default_formatting(cls, value: Any) -> Any:
        return {} if value is None else value

    def references(self) -> tuple[str | float | int | None, ...]:
        refs: list[str | float | int | None] = [element.ref for element in self.elements]
        if self.formula:
            refs.append(self.formula)
        return tuple(refs)


class ChartReference(_Document):
    chart_id: str = Field(min_length=1)
    order: int = 0
    width: int = Field(default=1, ge=1)


class ReportBlock(_Document):
    id: str = ""
    title: str = ""
    show_title: bool = True
    order: int = 0
    charts: tuple[ChartReference, ...] = ()

    def ordered_charts(self) -> list[ChartReference]:
        return sorted(self.charts, key=lambda chart: chart.order)


class GridSettings(_Document):
    desktop_units: int = Field(
        default=4, ge=1, validation_alias=AliasChoices("desktopUnits", "desktop")
    )
    tablet_units: int = Field(
        default=2, ge=1, validation_alias=AliasChoices("tabletUnits", "tablet")
    )
    mobile_units: int = Field(
        default=1, ge=1, validation_alias=AliasChoices("mobileUnits", "mobile")
    )


class ReportLayout(_Document):
    blocks: tuple[ReportBlock, ...] = ()
    grid_settings: GridSettings | None = None

    def ordered_blocks(self) -> list[ReportBlock]:
        return sorted(self.blocks, key=lambda block: block.order)
