from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import Activity
from .numeric_utils import as_float, as_int


logger = logging.getLogger(__name__)


def _local_tz(timezone_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone '%s'. Falling back to UTC.", timezone_name)
        return ZoneInfo("UTC")


def _parse_iso(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_local_start(activity: dict[str, Any], timezone_name: str = "UTC") -> datetime | None:
    # Strava stamps start_date_local with a bogus "Z"; the digits are already wall clock.
    local = _parse_iso(activity.get("start_date_local"))
    if local is not None:
        return local.replace(tzinfo=None)

    parsed = _parse_iso(activity.get("start_date"))
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(_local_tz(timezone_name)).replace(tzinfo=None)


def _non_negative(value: Any) -> float:
    parsed = as_float(value)
    if parsed is None or parsed < 0:
        return 0.0
    return parsed


def transform_activity(activity: dict[str, Any], timezone_name: str = "UTC") -> Activity | None:
    activity_id = activity.get("id")
    if activity_id is None or str(activity_id).strip() == "":
        return None

    start = parse_local_start(activity, timezone_name)
    if start is None:
        return None

    moving_time_minutes = _non_negative(activity.get("moving_time")) / 60.0
    elapsed_minutes = _non_negative(activity.get("elapsed_time")) / 60.0
    activity_type = str(activity.get("type") or activity.get("sport_type") or "Workout").strip()

    return Activity(
        id=str(activity_id).strip(),
        name=str(activity.get("name") or ""),
        type=activity_type,
        date=start,
        distance_km=_non_negative(activity.get("distance")) / 1000.0,
        moving_time_minutes=moving_time_minutes,
        duration_minutes=max(elapsed_minutes, moving_time_minutes),
        elevation_gain_meters=_non_negative(activity.get("total_elevation_gain")),
        average_speed_kmh=_non_negative(activity.get("average_speed")) * 3.6,
        max_speed_kmh=_non_negative(activity.get("max_speed")) * 3.6,
        average_heart_rate=as_float(activity.get("average_heartrate")),
        max_heart_rate=as_float(activity.get("max_heartrate")),
        calories=as_float(activity.get("calories")),
        workout_type=as_int(activity.get("workout_type")),
        kudos_count=as_int(activity.get("kudos_count")),
    )


def transform_activities(activities: list[Any], timezone_name: str = "UTC") -> list[Activity]:
    transformed: list[Activity] = []
    skipped = 0
    for payload in activities:
        if not isinstance(payload, dict):
            skipped += 1
            continue
        activity = transform_activity(payload, timezone_name)
        if activity is None:
            skipped += 1
            continue
        transformed.append(activity)
    if skipped:
        logger.warning("Skipped %s malformed activity payload(s).", skipped)
    return transformed
