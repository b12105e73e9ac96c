from __future__ import annotations

import json
from typing import Any, Iterable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from eventstats.charts.calculator import LABEL_PLACEHOLDER
from eventstats.charts.models import ChartConfiguration
from eventstats.stats.resolver import extract_variables


class StatUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    type: Literal["stat_updated"] = "stat_updated"
    stat_key: str = Field(alias="statKey", min_length=1)
    new_value: int | float | str | None = Field(default=None, alias="newValue")


def parse_update(payload: Mapping[str, Any] | str | bytes) -> StatUpdate:
    """Parse one live-channel message; raises ``ValueError`` when it is not a stat update."""
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    if not isinstance(payload, Mapping):
        raise ValueError("Live update payload must be a JSON object.")
    return StatUpdate.model_validate(payload)


def referenced_variables(config: ChartConfiguration) -> frozenset[str]:
    names: set[str] = set()
    for ref in config.references():
        names.update(extract_variables(ref))
    for element in config.elements:
        names.update(LABEL_PLACEHOLDER.findall(element.label))
    return frozenset(names)


def affected_chart_ids(configs: Iterable[ChartConfiguration], stat_key: str) -> list[str]:
    """Chart ids whose configuration depends on ``stat_key`` directly, by formula or derivation."""
    return [config.chart_id for config in configs if stat_key in referenced_variables(config)]


def apply_to_snapshot(stats: Mapping[str, Any], update: StatUpdate) -> dict[str, Any]:
    """New statistics snapshot with the update applied; the input is left untouched."""
    snapshot = dict(stats)
    if update.new_value is None:
        snapshot.pop(update.stat_key, None)
    else:
        snapshot[update.stat_key] = update.new_value
    return snapshot
