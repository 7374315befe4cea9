from __future__ import annotations

import calendar
import logging
from collections import defaultdict

from ..models import (
    Activity,
    DayOfWeekStats,
    HourDayHeatmapCell,
    MonthlyStats,
    MostActiveDay,
    PreferredTrainingTime,
    TypeStats,
    YearStats,
)


logger = logging.getLogger(__name__)

# Monday=0 throughout, matching datetime.weekday().
DAY_NAMES = list(calendar.day_name)
MONTH_NAMES = list(calendar.month_name)[1:]

# (name, start_hour, end_hour); night wraps past midnight.
TIME_BLOCKS: list[tuple[str, int, int]] = [
    ("early-morning", 5, 9),
    ("morning", 9, 12),
    ("afternoon", 12, 17),
    ("evening", 17, 21),
    ("night", 21, 5),
]


def time_block_for_hour(hour: int) -> str:
    for name, start, end in TIME_BLOCKS:
        if start < end:
            if start <= hour < end:
                return name
        elif hour >= start or hour < end:
            return name
    return TIME_BLOCKS[-1][0]


def heatmap_key(day: int, hour: int) -> str:
    return f"{day}-{hour}"


def activities_in_year(activities: list[Activity], year: int) -> list[Activity]:
    return [activity for activity in activities if activity.date.year == year]


def _most_active_day(by_day: list[DayOfWeekStats]) -> MostActiveDay | None:
    best: DayOfWeekStats | None = None
    for bucket in by_day:
        if bucket.activity_count == 0:
            continue
        if best is None or bucket.time_hours > best.time_hours:
            best = bucket
    if best is None:
        return None
    return MostActiveDay(
        day_name=best.day_name,
        activity_count=best.activity_count,
        distance_km=best.distance_km,
        time_hours=best.time_hours,
    )


def _preferred_training_time(block_counts: dict[str, int]) -> PreferredTrainingTime | None:
    best: tuple[str, int, int] | None = None
    for block in TIME_BLOCKS:
        if block_counts.get(block[0], 0) == 0:
            continue
        if best is None or block_counts[block[0]] > block_counts[best[0]]:
            best = block
    if best is None:
        return None
    name, start, end = best
    return PreferredTrainingTime(time_block=name, start_hour=start, end_hour=end, activity_count=block_counts[name])


def aggregate_year_stats(activities: list[Activity], year: int) -> YearStats:
    in_year = activities_in_year(activities, year)

    by_month = [MonthlyStats(month=index, month_name=MONTH_NAMES[index]) for index in range(12)]
    by_type: dict[str, TypeStats] = {}
    by_day = [DayOfWeekStats(day_of_week=index, day_name=DAY_NAMES[index]) for index in range(7)]
    heatmap: dict[str, HourDayHeatmapCell] = {}
    block_counts: dict[str, int] = defaultdict(int)

    total_distance = 0.0
    total_elevation = 0.0
    total_hours = 0.0
    total_kudos = 0
    longest: Activity | None = None
    highest: Activity | None = None

    for activity in in_year:
        distance = activity.distance_km or 0.0
        elevation = activity.elevation_gain_meters or 0.0
        hours = (activity.duration_minutes or 0.0) / 60.0

        total_distance += distance
        total_elevation += elevation
        total_hours += hours
        total_kudos += activity.kudos_count or 0

        month = by_month[activity.date.month - 1]
        month.distance_km += distance
        month.elevation_meters += elevation
        month.time_hours += hours
        month.activity_count += 1

        type_bucket = by_type.setdefault(activity.type, TypeStats())
        type_bucket.count += 1
        type_bucket.distance_km += distance
        type_bucket.elevation_meters += elevation
        type_bucket.time_hours += hours

        weekday = activity.date.weekday()
        day = by_day[weekday]
        day.distance_km += distance
        day.elevation_meters += elevation
        day.time_hours += hours
        day.activity_count += 1

        hour = activity.date.hour
        cell = heatmap.setdefault(heatmap_key(weekday, hour), HourDayHeatmapCell(day=weekday, hour=hour))
        cell.activity_count += 1
        cell.distance_km += distance
        cell.time_hours += hours
        cell.activities.append(activity)

        block_counts[time_block_for_hour(hour)] += 1

        if longest is None or distance > longest.distance_km:
            longest = activity
        if highest is None or elevation > (highest.elevation_gain_meters or 0.0):
            highest = activity

    for day in by_day:
        if day.activity_count:
            day.average_distance = day.distance_km / day.activity_count
            day.average_time = day.time_hours / day.activity_count

    logger.debug("Aggregated %s of %s activities into %s stats.", len(in_year), len(activities), year)
    return YearStats(
        year=year,
        total_distance_km=total_distance,
        total_elevation_meters=total_elevation,
        total_time_hours=total_hours,
        activity_count=len(in_year),
        total_kudos=total_kudos,
        by_month=by_month,
        by_type=by_type,
        by_day_of_week=by_day,
        hour_day_heatmap=heatmap,
        most_active_day=_most_active_day(by_day),
        preferred_training_time=_preferred_training_time(block_counts),
        longest_activity=longest,
        highest_elevation=highest,
    )
