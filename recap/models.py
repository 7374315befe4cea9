from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from typing import Any

RUN_TYPES = frozenset({"Run"})
CYCLING_TYPES = frozenset({"Ride", "VirtualRide"})
SWIM_TYPES = frozenset({"Swim"})

SPORT_TYPES: dict[str, frozenset[str]] = {
    "running": RUN_TYPES,
    "cycling": CYCLING_TYPES,
    "swimming": SWIM_TYPES,
}


def _serialize(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: _serialize(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_serialize(item) for item in value)
    return value


class _Serializable:
    def to_dict(self) -> dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class Activity(_Serializable):
    id: str
    name: str
    type: str
    date: datetime
    distance_km: float
    moving_time_minutes: float
    duration_minutes: float
    elevation_gain_meters: float = 0.0
    average_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    average_heart_rate: float | None = None
    max_heart_rate: float | None = None
    calories: float | None = None
    workout_type: int | None = None
    kudos_count: int | None = None

    @property
    def pace_min_per_km(self) -> float:
        if self.distance_km <= 0:
            return math.inf
        return self.moving_time_minutes / self.distance_km


@dataclass(frozen=True)
class TitlePattern(_Serializable):
    pattern: str
    exclude_from_highlights: bool = True
    exclude_from_stats: bool = False

    def matches(self, name: str) -> bool:
        needle = self.pattern.strip().lower()
        return bool(needle) and needle in (name or "").lower()


@dataclass(frozen=True)
class DistanceFilter(_Serializable):
    operator: str
    value: float
    unit: str = "km"
    id: str | None = None


@dataclass(frozen=True)
class ActivityTypeFilter(_Serializable):
    activity_type: str
    distance_filters: tuple[DistanceFilter, ...] = ()
    title_patterns: tuple[str, ...] = ()


@dataclass
class TriathlonLegs(_Serializable):
    swim: Activity | None = None
    bike: Activity | None = None
    run: Activity | None = None

    def in_order(self) -> list[Activity]:
        return [leg for leg in (self.swim, self.bike, self.run) if leg is not None]


@dataclass
class TriathlonRace(_Serializable):
    date: date
    activities: TriathlonLegs
    total_distance: float
    total_time: float
    total_elevation: float
    type: str


@dataclass
class RaceHighlight(_Serializable):
    id: str
    name: str
    date: date | datetime
    type: str
    distance: float
    duration: float
    badge: str
    elevation: float | None = None
    activities: list[Activity] = field(default_factory=list)
    activity_type: str | None = None

    def activity_ids(self) -> set[str]:
        ids = {activity.id for activity in self.activities}
        if not self.activities:
            ids.add(self.id)
        return ids


@dataclass
class DistanceRecord(_Serializable):
    distance: str
    activity: Activity
    pace: float | None = None
    speed: float | None = None


@dataclass
class SportHighlights(_Serializable):
    sport: str
    total_distance: float
    total_time: float
    activity_count: int
    distance_records: list[DistanceRecord]
    longest_activity: Activity
    total_elevation: float
    biggest_climb: Activity | None = None
    average_pace: float | None = None
    average_speed: float | None = None


@dataclass
class MonthlyStats(_Serializable):
    month: int
    month_name: str
    distance_km: float = 0.0
    elevation_meters: float = 0.0
    time_hours: float = 0.0
    activity_count: int = 0


@dataclass
class TypeStats(_Serializable):
    count: int = 0
    distance_km: float = 0.0
    elevation_meters: float = 0.0
    time_hours: float = 0.0


@dataclass
class DayOfWeekStats(_Serializable):
    day_of_week: int
    day_name: str
    distance_km: float = 0.0
    elevation_meters: float = 0.0
    time_hours: float = 0.0
    activity_count: int = 0
    average_distance: float = 0.0
    average_time: float = 0.0


@dataclass
class HourDayHeatmapCell(_Serializable):
    day: int
    hour: int
    activity_count: int = 0
    distance_km: float = 0.0
    time_hours: float = 0.0
    activities: list[Activity] = field(default_factory=list)


@dataclass
class MostActiveDay(_Serializable):
    day_name: str
    activity_count: int
    distance_km: float
    time_hours: float


@dataclass
class PreferredTrainingTime(_Serializable):
    time_block: str
    start_hour: int
    end_hour: int
    activity_count: int


@dataclass
class YearStats(_Serializable):
    year: int
    total_distance_km: float
    total_elevation_meters: float
    total_time_hours: float
    activity_count: int
    total_kudos: int
    by_month: list[MonthlyStats]
    by_type: dict[str, TypeStats]
    by_day_of_week: list[DayOfWeekStats]
    hour_day_heatmap: dict[str, HourDayHeatmapCell]
    most_active_day: MostActiveDay | None = None
    preferred_training_time: PreferredTrainingTime | None = None
    longest_activity: Activity | None = None
    highest_elevation: Activity | None = None
