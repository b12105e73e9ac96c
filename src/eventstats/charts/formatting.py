from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from eventstats.charts.models import Formatting
from eventstats.stats.resolver import NA, coerce_number, is_na

DEFAULT_DECIMALS = 2


def round_half_away(number: float, decimals: int) -> float:
    """Round halves away from zero, so 2.5 becomes 3 and -2.5 becomes -3."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(number)).quantize(quantum, rounding=ROUND_HALF_UP))


def decimals_for(formatting: Formatting) -> int:
    """Number of decimals a value is rendered with.

    ``rounded`` wins over the legacy ``decimals`` field whenever both are set.
    """
    if formatting.rounded is not None:
        return 0 if formatting.rounded else DEFAULT_DECIMALS
    if formatting.decimals is not None:
        return formatting.decimals
    return DEFAULT_DECIMALS


def format_value(value: Any, formatting: Formatting | None = None) -> str:
    formatting = formatting or Formatting()
    if value is None or is_na(value):
        return NA
    if isinstance(value, str):
        return value
    number = coerce_number(value)
    if number is None:
        return NA
    decimals = decimals_for(formatting)
    rounded = round_half_away(number, decimals)
    return f"{formatting.prefix}{rounded:.{decimals}f}{formatting.suffix}"


def percentage(value: Any, total: Any, *, rounded: bool | None = None) -> float | None:
    numerator = coerce_number(value)
    denominator = coerce_number(total)
    if numerator is None or denominator is None or denominator <= 0:
        return None
    return round_half_away(numerator / denominator * 100, 0 if rounded else DEFAULT_DECIMALS)


def format_percentage(share: float | None, *, rounded: bool | None = None) -> str:
    if share is None:
        return NA
    return f"{share:.{0 if rounded else DEFAULT_DECIMALS}f}%"


def display_value(
    value: Any, formatting: Formatting | None = None, *, na_display: str = "N/A"
) -> str:
    """Formatted value for export and preview surfaces, where NA reads as ``na_display``."""
    formatted = format_value(value, formatting)
    return na_display if formatted == NA else formatted
