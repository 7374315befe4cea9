from __future__ import annotations

import math
from typing import Any


def as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_int(value: Any) -> int | None:
    parsed = as_float(value)
    if parsed is None or not math.isfinite(parsed):
        return None
    return int(round(parsed))


# x/0 gives inf and 0/0 gives nan instead of raising.
def ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        if numerator == 0:
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def minutes_to_pace(value: Any, *, unit: str = "/km", none_value: str = "N/A") -> str:
    minutes_per_unit = as_float(value)
    if minutes_per_unit is None or not math.isfinite(minutes_per_unit) or minutes_per_unit <= 0:
        return none_value
    minutes = int(minutes_per_unit)
    seconds = int(round((minutes_per_unit - minutes) * 60))
    if seconds == 60:
        minutes += 1
        seconds = 0
    return f"{minutes}:{seconds:02d}{unit}"
