from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable

from .models import Activity, ActivityTypeFilter, DistanceFilter, TitlePattern
from .numeric_utils import as_float
from .storage import read_json, write_json


logger = logging.getLogger(__name__)

REVIEW_SETTINGS_VERSION = 1

TARGET_HIGHLIGHTS = "highlights"
TARGET_STATS = "stats"

OPERATOR_ALIASES: dict[str, str] = {
    "gte": "gte",
    ">=": "gte",
    "≥": "gte",
    "gt": "gt",
    ">": "gt",
    "lte": "lte",
    "<=": "lte",
    "≤": "lte",
    "lt": "lt",
    "<": "lt",
    "eq": "eq",
    "≈": "≈",
    "±": "≈",
    "~": "≈",
    "=": "=",
}

DISTANCE_UNITS = {"km", "mi"}

VIRTUAL_TYPES_BY_SPORT: dict[str, set[str]] = {
    "cycling": {"VirtualRide"},
    "running": {"VirtualRun"},
    "swimming": set(),
}

DEFAULT_FILTER_VALUES: dict[str, tuple[float, ...]] = {
    "Run": (5, 10, 15, 21, 42),
    "Ride": (40, 50, 90, 100, 150, 200),
    "VirtualRide": (40, 50, 90, 100, 150, 200),
    "Swim": (0.5, 1, 1.5, 2),
}


def _default_virtual_exclusions() -> dict[str, dict[str, bool]]:
    return {sport: {TARGET_HIGHLIGHTS: False, TARGET_STATS: False} for sport in VIRTUAL_TYPES_BY_SPORT}


@dataclass(frozen=True)
class ReviewSettings:
    title_ignore_patterns: tuple[TitlePattern, ...] = ()
    activity_filters: tuple[ActivityTypeFilter, ...] = ()
    excluded_activity_types: frozenset[str] = frozenset()
    exclude_virtual_per_sport: dict[str, dict[str, bool]] = field(default_factory=_default_virtual_exclusions)
    include_in_highlights: frozenset[str] | None = None
    enable_triathlon_highlights: bool = True
    include_standard_races: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": REVIEW_SETTINGS_VERSION,
            "titleIgnorePatterns": [
                {
                    "pattern": item.pattern,
                    "excludeFromHighlights": item.exclude_from_highlights,
                    "excludeFromStats": item.exclude_from_stats,
                }
                for item in self.title_ignore_patterns
            ],
            "activityFilters": [
                {
                    "activityType": item.activity_type,
                    "distanceFilters": [
                        {
                            "id": distance_filter.id,
                            "operator": distance_filter.operator,
                            "value": distance_filter.value,
                            "unit": distance_filter.unit,
                        }
                        for distance_filter in item.distance_filters
                    ],
                    "titlePatterns": list(item.title_patterns),
                }
                for item in self.activity_filters
            ],
            "excludedActivityTypes": sorted(self.excluded_activity_types),
            "excludeVirtualPerSport": {
                sport: dict(targets) for sport, targets in self.exclude_virtual_per_sport.items()
            },
            "activityTypeSettings": {
                "includeInHighlights": (
                    sorted(self.include_in_highlights) if self.include_in_highlights is not None else None
                ),
            },
            "specialOptions": {
                "enableTriathlonHighlights": self.enable_triathlon_highlights,
                "includeStandardRaces": self.include_standard_races,
            },
        }


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return bool(int(value))
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
    return None


def _pick(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _list_value(payload: dict[str, Any], *keys: str) -> list[Any]:
    raw = _pick(payload, *keys)
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    logger.warning("Ignoring %s: expected a list, got %s.", keys[0], type(raw).__name__)
    return []


def _bool_value(payload: dict[str, Any], default: bool, *keys: str) -> bool:
    parsed = _to_bool(_pick(payload, *keys))
    return default if parsed is None else parsed


def _type_names(raw: Any) -> list[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return []
    names: list[str] = []
    for item in raw:
        text = str(item or "").strip()
        if text and text not in names:
            names.append(text)
    return names


def normalize_operator(raw: Any) -> str | None:
    return OPERATOR_ALIASES.get(str(raw or "").strip().lower())


def parse_title_pattern(raw: Any) -> TitlePattern | None:
    if isinstance(raw, str):
        raw = {"pattern": raw}
    if not isinstance(raw, dict):
        return None
    pattern = str(raw.get("pattern") or "").strip()
    if not pattern:
        return None
    return TitlePattern(
        pattern=pattern,
        exclude_from_highlights=_bool_value(raw, True, "excludeFromHighlights", "exclude_from_highlights"),
        exclude_from_stats=_bool_value(raw, False, "excludeFromStats", "exclude_from_stats"),
    )


def parse_distance_filter(raw: Any) -> DistanceFilter | None:
    if not isinstance(raw, dict):
        return None
    operator = normalize_operator(raw.get("operator"))
    value = as_float(raw.get("value"))
    if operator is None or value is None or not math.isfinite(value):
        logger.warning("Ignoring malformed distance filter: %s", raw)
        return None
    unit = str(raw.get("unit") or "km").strip().lower()
    if unit not in DISTANCE_UNITS:
        logger.warning("Unknown distance unit '%s'; assuming km.", unit)
        unit = "km"
    filter_id = raw.get("id")
    return DistanceFilter(
        operator=operator,
        value=value,
        unit=unit,
        id=str(filter_id) if filter_id is not None else None,
    )


def parse_activity_filter(raw: Any) -> ActivityTypeFilter | None:
    if not isinstance(raw, dict):
        return None
    activity_type = str(_pick(raw, "activityType", "activity_type") or "").strip()
    if not activity_type:
        return None

    distance_filters: list[DistanceFilter] = []
    for item in _list_value(raw, "distanceFilters", "distance_filters"):
        parsed = parse_distance_filter(item)
        if parsed is not None:
            distance_filters.append(parsed)

    title_patterns = []
    for item in _list_value(raw, "titlePatterns", "title_patterns"):
        text = str(item or "").strip()
        if text and text not in title_patterns:
            title_patterns.append(text)

    return ActivityTypeFilter(
        activity_type=activity_type,
        distance_filters=tuple(distance_filters),
        title_patterns=tuple(title_patterns),
    )


def parse_review_settings(payload: Any) -> ReviewSettings:
    if not isinstance(payload, dict):
        return ReviewSettings()

    patterns: list[TitlePattern] = []
    for item in _list_value(payload, "titleIgnorePatterns", "title_ignore_patterns"):
        parsed = parse_title_pattern(item)
        if parsed is None:
            logger.warning("Ignoring malformed title pattern: %s", item)
            continue
        if any(existing.pattern == parsed.pattern for existing in patterns):
            continue
        patterns.append(parsed)

    activity_filters = []
    for item in _list_value(payload, "activityFilters", "activity_filters"):
        parsed_filter = parse_activity_filter(item)
        if parsed_filter is None:
            logger.warning("Ignoring malformed activity filter: %s", item)
            continue
        activity_filters.append(parsed_filter)

    virtual = _default_virtual_exclusions()
    raw_virtual = _pick(payload, "excludeVirtualPerSport", "exclude_virtual_per_sport")
    if isinstance(raw_virtual, dict):
        for sport, targets in raw_virtual.items():
            if sport not in virtual or not isinstance(targets, dict):
                continue
            for target in (TARGET_HIGHLIGHTS, TARGET_STATS):
                parsed_bool = _to_bool(targets.get(target))
                if parsed_bool is not None:
                    virtual[sport][target] = parsed_bool

    type_settings = _pick(payload, "activityTypeSettings", "activity_type_settings")
    include_raw = None
    if isinstance(type_settings, dict):
        include_raw = _pick(type_settings, "includeInHighlights", "include_in_highlights")
    if include_raw is None:
        include_raw = _pick(payload, "includeInHighlights", "include_in_highlights")
    if include_raw is not None and not isinstance(include_raw, (list, tuple)):
        logger.warning("Ignoring includeInHighlights: expected a list, got %s.", type(include_raw).__name__)
        include_raw = None

    special = _pick(payload, "specialOptions", "special_options")
    special = special if isinstance(special, dict) else {}

    return ReviewSettings(
        title_ignore_patterns=tuple(patterns),
        activity_filters=tuple(activity_filters),
        excluded_activity_types=frozenset(
            _type_names(_pick(payload, "excludedActivityTypes", "excluded_activity_types"))
        ),
        exclude_virtual_per_sport=virtual,
        include_in_highlights=frozenset(_type_names(include_raw)) if include_raw is not None else None,
        enable_triathlon_highlights=_bool_value(
            special, True, "enableTriathlonHighlights", "enable_triathlon_highlights"
        ),
        include_standard_races=_bool_value(special, False, "includeStandardRaces", "include_standard_races"),
    )


def default_activity_filters() -> tuple[ActivityTypeFilter, ...]:
    return tuple(
        ActivityTypeFilter(
            activity_type=activity_type,
            distance_filters=tuple(
                DistanceFilter(operator="≈", value=float(value), unit="km", id=f"default-{activity_type}-{value:g}")
                for value in values
            ),
        )
        for activity_type, values in DEFAULT_FILTER_VALUES.items()
    )


def with_default_filters(settings: ReviewSettings) -> ReviewSettings:
    if settings.activity_filters:
        return settings
    return replace(settings, activity_filters=default_activity_filters())


def load_review_settings(path: Path) -> ReviewSettings:
    payload = read_json(path)
    if payload is None:
        logger.info("No review settings at %s; using defaults.", path)
        return with_default_filters(ReviewSettings())
    return parse_review_settings(payload)


def save_review_settings(path: Path, settings: ReviewSettings) -> None:
    write_json(path, settings.to_dict())


def add_ignore_pattern(settings: ReviewSettings, pattern: str) -> ReviewSettings:
    text = str(pattern or "").strip()
    if not text or any(item.pattern == text for item in settings.title_ignore_patterns):
        return settings
    return replace(
        settings,
        title_ignore_patterns=settings.title_ignore_patterns + (TitlePattern(pattern=text),),
    )


def update_ignore_pattern(settings: ReviewSettings, old_pattern: str, **updates: Any) -> ReviewSettings:
    return replace(
        settings,
        title_ignore_patterns=tuple(
            replace(item, **updates) if item.pattern == old_pattern else item
            for item in settings.title_ignore_patterns
        ),
    )


def remove_ignore_pattern(settings: ReviewSettings, pattern: str) -> ReviewSettings:
    return replace(
        settings,
        title_ignore_patterns=tuple(item for item in settings.title_ignore_patterns if item.pattern != pattern),
    )


def matches_title_pattern(name: str, patterns: Iterable[TitlePattern], target: str = TARGET_HIGHLIGHTS) -> bool:
    for pattern in patterns or ():
        applies = pattern.exclude_from_highlights if target == TARGET_HIGHLIGHTS else pattern.exclude_from_stats
        if applies and pattern.matches(name):
            return True
    return False


def _virtual_excluded(activity_type: str, settings: ReviewSettings, target: str) -> bool:
    for sport, virtual_types in VIRTUAL_TYPES_BY_SPORT.items():
        if activity_type in virtual_types and settings.exclude_virtual_per_sport.get(sport, {}).get(target):
            return True
    return False


def filter_activities(
    activities: list[Activity],
    settings: ReviewSettings,
    target: str = TARGET_HIGHLIGHTS,
) -> list[Activity]:
    return [
        activity
        for activity in activities
        if activity.type not in settings.excluded_activity_types
        and not _virtual_excluded(activity.type, settings, target)
        and not matches_title_pattern(activity.name, settings.title_ignore_patterns, target)
    ]
