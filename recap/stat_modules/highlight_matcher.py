from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable

from ..models import Activity, ActivityTypeFilter, DistanceFilter, RaceHighlight, TitlePattern


logger = logging.getLogger(__name__)

KM_PER_MILE = 1.609344
PACE_TIE_EPSILON = 1e-3  # min/km
_FLOAT_SLACK = 1e-9

RELATIVE_TOLERANCES: dict[str, float] = {
    "eq": 0.10,
    "≈": 0.05,
}
ABSOLUTE_TOLERANCE_KM: dict[str, float] = {
    "=": 0.1,
}
ONE_SIDED_OPERATORS = {"gte", "gt", "lte", "lt"}
KNOWN_OPERATORS = set(RELATIVE_TOLERANCES) | set(ABSOLUTE_TOLERANCE_KM) | ONE_SIDED_OPERATORS

OPERATOR_PREFIXES: dict[str, str] = {
    "gte": "≥ ",
    "gt": "> ",
    "lte": "≤ ",
    "lt": "< ",
}

SPORT_ICONS: dict[str, str] = {
    "Run": "🏃",
    "Ride": "🚴",
    "VirtualRide": "🚴",
    "Swim": "🏊",
    "Walk": "🚶",
    "Hike": "🥾",
}
DEFAULT_ICON = "🏅"

HALF_MARATHON_KM = 21.0975
MARATHON_KM = 42.195


@dataclass
class MatchResult:
    highlights: list[RaceHighlight] = field(default_factory=list)
    claimed_ids: set[str] = field(default_factory=set)


def target_km(distance_filter: DistanceFilter) -> float:
    if str(distance_filter.unit).lower() == "mi":
        return distance_filter.value * KM_PER_MILE
    return distance_filter.value


def matches_distance(distance_km: float, distance_filter: DistanceFilter) -> bool:
    operator = distance_filter.operator
    target = target_km(distance_filter)
    if operator == "gte":
        return distance_km >= target - _FLOAT_SLACK
    if operator == "gt":
        return distance_km > target
    if operator == "lte":
        return distance_km <= target + _FLOAT_SLACK
    if operator == "lt":
        return distance_km < target
    if operator in RELATIVE_TOLERANCES:
        return abs(distance_km - target) <= RELATIVE_TOLERANCES[operator] * abs(target) + _FLOAT_SLACK
    if operator in ABSOLUTE_TOLERANCE_KM:
        return abs(distance_km - target) <= ABSOLUTE_TOLERANCE_KM[operator] + _FLOAT_SLACK
    return False


def is_usable_filter(distance_filter: DistanceFilter) -> bool:
    if distance_filter.operator not in KNOWN_OPERATORS:
        logger.warning("Unknown distance operator '%s'; filter matches nothing.", distance_filter.operator)
        return False
    if not isinstance(distance_filter.value, (int, float)) or not math.isfinite(distance_filter.value):
        logger.warning("Non-numeric distance filter value %r; filter matches nothing.", distance_filter.value)
        return False
    return True


def distance_label(activity_type: str, value: float, unit: str = "km") -> str:
    unit = str(unit or "km").lower()
    km = value * KM_PER_MILE if unit == "mi" else value

    if activity_type == "Run":
        if abs(km - HALF_MARATHON_KM) <= 0.15:
            return "Half Marathon"
        if abs(km - MARATHON_KM) <= 0.25:
            return "Marathon"
        if unit == "km" and float(value).is_integer() and value in (5, 10, 15):
            return f"{int(value)}K"
    if activity_type == "Swim" and unit == "km":
        return f"{int(round(value * 1000))}m"
    return f"{value:g}{unit}"


def distance_badge(activity_type: str, distance_filter: DistanceFilter) -> str:
    icon = SPORT_ICONS.get(activity_type, DEFAULT_ICON)
    prefix = OPERATOR_PREFIXES.get(distance_filter.operator, "")
    return f"{icon} {prefix}{distance_label(activity_type, distance_filter.value, distance_filter.unit)}"


def title_badge(activity_type: str, pattern: str) -> str:
    return f"{SPORT_ICONS.get(activity_type, DEFAULT_ICON)} {pattern}"


def _is_better(candidate: Activity, incumbent: Activity, target: float) -> bool:
    pace_delta = candidate.pace_min_per_km - incumbent.pace_min_per_km
    if math.isinf(pace_delta) or (math.isfinite(pace_delta) and abs(pace_delta) > PACE_TIE_EPSILON):
        return pace_delta < 0

    deviation_delta = abs(candidate.distance_km - target) - abs(incumbent.distance_km - target)
    if abs(deviation_delta) > _FLOAT_SLACK:
        return deviation_delta < 0

    if candidate.date != incumbent.date:
        return candidate.date > incumbent.date
    return False


def pick_best(candidates: Iterable[Activity], distance_filter: DistanceFilter) -> Activity | None:
    target = target_km(distance_filter)
    best: Activity | None = None
    for candidate in candidates:
        if best is None or _is_better(candidate, best, target):
            best = candidate
    return best


def _excluded_from_highlights(activity: Activity, title_patterns: Iterable[TitlePattern]) -> bool:
    return any(pattern.exclude_from_highlights and pattern.matches(activity.name) for pattern in title_patterns)


def _custom_highlight(activity: Activity, badge: str) -> RaceHighlight:
    return RaceHighlight(
        id=activity.id,
        name=activity.name,
        date=activity.date,
        type="custom-highlight",
        distance=activity.distance_km,
        duration=activity.moving_time_minutes,
        elevation=activity.elevation_gain_meters,
        badge=badge,
        activity_type=activity.type,
    )


# Each activity is claimed by at most one filter. Claiming is greedy per filter
# in configuration order, not an optimal assignment across filters.
def match_custom_highlights(
    activities: list[Activity],
    activity_filters: Iterable[ActivityTypeFilter] | None,
    title_patterns: Iterable[TitlePattern] | None = None,
) -> MatchResult:
    patterns = list(title_patterns or [])
    pool = [activity for activity in activities if not _excluded_from_highlights(activity, patterns)]
    result = MatchResult()

    for type_filter in activity_filters or []:
        sport_pool = [activity for activity in pool if activity.type == type_filter.activity_type]

        # Collect every (filter, candidates) pair before any claim is made.
        candidate_sets = [
            (distance_filter, [a for a in sport_pool if matches_distance(a.distance_km, distance_filter)])
            for distance_filter in type_filter.distance_filters
            if is_usable_filter(distance_filter)
        ]

        for distance_filter, candidates in candidate_sets:
            best = pick_best((a for a in candidates if a.id not in result.claimed_ids), distance_filter)
            if best is None:
                continue
            result.claimed_ids.add(best.id)
            result.highlights.append(_custom_highlight(best, distance_badge(type_filter.activity_type, distance_filter)))

        for pattern in type_filter.title_patterns:
            needle = str(pattern or "").strip().lower()
            if not needle:
                continue
            for activity in sport_pool:
                if activity.id in result.claimed_ids or needle not in (activity.name or "").lower():
                    continue
                result.claimed_ids.add(activity.id)
                result.highlights.append(_custom_highlight(activity, title_badge(type_filter.activity_type, pattern)))

    logger.debug(
        "Matched %s custom highlight(s) across %s activities.",
        len(result.highlights),
        len(pool),
    )
    return result
