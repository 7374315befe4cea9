from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from ..models import (
    SPORT_TYPES,
    Activity,
    ActivityTypeFilter,
    DistanceRecord,
    SportHighlights,
    TitlePattern,
)
from ..numeric_utils import ratio
from .highlight_matcher import (
    OPERATOR_PREFIXES,
    distance_label,
    is_usable_filter,
    matches_distance,
    target_km,
)


logger = logging.getLogger(__name__)

# Totals use every activity of a sport; longest and biggest climb skip only
# title-excluded activities; records also skip filter-claimed ones.
BIGGEST_CLIMB_MIN_METERS = 50.0


@dataclass(frozen=True)
class DistanceBand:
    label: str
    contains: Callable[[float], bool]


def _range_band(label: str, low: float, high: float) -> DistanceBand:
    return DistanceBand(label, lambda km: low <= km <= high)


DEFAULT_BANDS: dict[str, list[DistanceBand]] = {
    "running": [
        _range_band("5km", 4.5, 5.5),
        _range_band("10km", 9.5, 10.5),
        _range_band("15km", 14, 16),
        _range_band("Half Marathon", 20, 22),
        _range_band("Marathon", 40, 44),
    ],
    "cycling": [
        _range_band("50km", 45, 55),
        _range_band("100km", 95, 105),
        _range_band("150km", 145, 155),
        _range_band("200km", 195, 210),
    ],
    "swimming": [
        _range_band("100m", 0.08, 0.12),
        _range_band("500m", 0.4, 0.6),
        _range_band("1000m", 0.9, 1.1),
        _range_band("2000m", 1.8, 2.2),
        _range_band("5000m", 4.5, 5.5),
    ],
}


def distance_bands(sport: str, activity_filters: Iterable[ActivityTypeFilter] | None) -> list[DistanceBand]:
    sport_types = SPORT_TYPES[sport]
    bands: list[DistanceBand] = []
    seen_targets: set[float] = set()
    for type_filter in activity_filters or []:
        if type_filter.activity_type not in sport_types:
            continue
        for distance_filter in type_filter.distance_filters:
            if not is_usable_filter(distance_filter):
                continue
            target = round(target_km(distance_filter), 6)
            if target in seen_targets:
                continue
            seen_targets.add(target)
            bands.append(
                DistanceBand(
                    OPERATOR_PREFIXES.get(distance_filter.operator, "")
                    + distance_label(type_filter.activity_type, distance_filter.value, distance_filter.unit),
                    lambda km, f=distance_filter: matches_distance(km, f),
                )
            )
    return bands or DEFAULT_BANDS[sport]


def _record(sport: str, band: DistanceBand, activities: list[Activity]) -> DistanceRecord | None:
    best: Activity | None = None
    for activity in activities:
        if not band.contains(activity.distance_km):
            continue
        if best is None or activity.moving_time_minutes < best.moving_time_minutes:
            best = activity
    if best is None:
        return None

    record = DistanceRecord(distance=band.label, activity=best)
    if sport == "running":
        record.pace = ratio(best.moving_time_minutes, best.distance_km)
    elif sport == "swimming":
        record.pace = ratio(best.moving_time_minutes, best.distance_km) / 10
    else:
        record.speed = ratio(best.distance_km, best.moving_time_minutes) * 60
    return record


def _excluded_by_title(activity: Activity, patterns: list[TitlePattern]) -> bool:
    return any(pattern.exclude_from_highlights and pattern.matches(activity.name) for pattern in patterns)


def _sport_highlights(
    sport: str,
    activities: list[Activity],
    activity_filters: Iterable[ActivityTypeFilter] | None,
    excluded_ids: set[str],
    patterns: list[TitlePattern],
    include_in_highlights: set[str] | None,
) -> SportHighlights | None:
    sport_types = SPORT_TYPES[sport]
    all_of_sport = [activity for activity in activities if activity.type in sport_types]
    if not all_of_sport:
        return None

    longest_eligible = [activity for activity in all_of_sport if not _excluded_by_title(activity, patterns)]
    displayable = [
        activity
        for activity in longest_eligible
        if include_in_highlights is None or activity.type in include_in_highlights
    ]
    if not displayable:
        logger.debug("No %s activities left for highlights; omitting sport.", sport)
        return None
    # Claimed activities already have a custom card.
    record_pool = [activity for activity in displayable if activity.id not in excluded_ids]

    total_distance = sum(activity.distance_km for activity in all_of_sport)
    total_time = sum(activity.moving_time_minutes for activity in all_of_sport)
    total_elevation = sum(activity.elevation_gain_meters or 0.0 for activity in all_of_sport)

    records = []
    for band in distance_bands(sport, activity_filters):
        record = _record(sport, band, record_pool)
        if record is not None:
            records.append(record)

    longest = longest_eligible[0]
    climb = longest_eligible[0]
    for activity in longest_eligible[1:]:
        if activity.distance_km > longest.distance_km:
            longest = activity
        if (activity.elevation_gain_meters or 0.0) > (climb.elevation_gain_meters or 0.0):
            climb = activity

    highlights = SportHighlights(
        sport=sport,
        total_distance=total_distance,
        total_time=total_time,
        activity_count=len(all_of_sport),
        distance_records=records,
        longest_activity=longest,
        total_elevation=total_elevation,
        biggest_climb=climb if (climb.elevation_gain_meters or 0.0) > BIGGEST_CLIMB_MIN_METERS else None,
    )
    if sport == "running":
        highlights.average_pace = ratio(total_time, total_distance)
    elif sport == "swimming":
        highlights.average_pace = ratio(total_time, total_distance) / 10
    else:
        highlights.average_speed = ratio(total_distance, total_time) * 60
    return highlights


def calculate_sport_highlights(
    activities: list[Activity],
    activity_filters: Iterable[ActivityTypeFilter] | None = None,
    excluded_activity_ids: Iterable[str] | None = None,
    title_ignore_patterns: Iterable[TitlePattern] | None = None,
    include_in_highlights: Iterable[str] | None = None,
) -> dict[str, SportHighlights]:
    filters = list(activity_filters or [])
    excluded_ids = set(excluded_activity_ids or [])
    patterns = list(title_ignore_patterns or [])
    allowed = set(include_in_highlights) if include_in_highlights is not None else None

    result: dict[str, SportHighlights] = {}
    for sport in SPORT_TYPES:
        highlights = _sport_highlights(sport, activities, filters, excluded_ids, patterns, allowed)
        if highlights is not None:
            result[sport] = highlights
    return result
