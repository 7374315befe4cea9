from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable

from ..models import CYCLING_TYPES, Activity, RaceHighlight, TriathlonLegs, TriathlonRace


logger = logging.getLogger(__name__)

NAMED_EVENT_RE = re.compile(
    r"triathlon|ironman|70\.3|half.?iron|full.?iron|olympic|sprint.?tri|t100|challenge",
    re.IGNORECASE,
)
PREFERRED_NAME_RE = re.compile(r"triathlon|ironman|70\.3|t100|challenge", re.IGNORECASE)
EVENT_KEYWORD_RE = re.compile(
    r"triathlon|ironman|70\.3|t100|challenge|sprint|olympic|full|half",
    re.IGNORECASE,
)
GENERIC_NAME_RE = re.compile(
    r"^(swim|bike|run|ride|morning|afternoon|evening|lunch)\s*(swim|bike|run|ride)?$",
    re.IGNORECASE,
)
_SPORT_WORDS = r"(swim|bike|run|ride|cycling|running|swimming)"
LEADING_SPORT_RE = re.compile(rf"^{_SPORT_WORDS}\s+", re.IGNORECASE)
TRAILING_SPORT_RE = re.compile(rf"\s+{_SPORT_WORDS}$", re.IGNORECASE)
TRAILING_SYMBOLS_RE = re.compile(r"[\s\W_]+$")

# (swim, bike, run) gates in km, indexed by whether the day carries an event name.
MIN_LEG_KM: dict[bool, tuple[float, float, float]] = {
    True: (0.3, 8.0, 2.0),
    False: (0.4, 10.0, 2.5),
}
MIN_TRANSITION_MINUTES = 0.5
MAX_TRANSITION_MINUTES = 120.0
MAX_EVENT_SPAN_HOURS = 12.0
MOUNTAIN_ELEVATION_METERS = 1000.0

TierPredicate = Callable[[float, float, float], bool]

TIER_RULES: list[tuple[str, TierPredicate]] = [
    ("full", lambda swim, bike, run: swim >= 3.0 and bike >= 160 and run >= 35),
    ("half", lambda swim, bike, run: swim >= 1.5 and bike >= 80 and run >= 18),
    ("t100", lambda swim, bike, run: 0.9 < swim < 2.1 and 87 <= bike <= 93 and 8 <= run < 12),
    ("olympic", lambda swim, bike, run: swim >= 1.0 and bike >= 35 and run >= 8),
    ("quarter", lambda swim, bike, run: 0.9 <= swim <= 1.1 and 35 <= bike <= 45 and 8 <= run < 12),
    ("sprint", lambda swim, bike, run: swim >= 0.5 and bike >= 15 and run >= 4),
]

TIER_NAMES: dict[str, str] = {
    "full": "Full Distance Triathlon",
    "half": "Half Distance Triathlon",
    "t100": "T100 Triathlon",
    "olympic": "Olympic Triathlon",
    "quarter": "Quarter Distance Triathlon",
    "sprint": "Sprint Triathlon",
    "mountain": "Mountain Triathlon",
    "other": "Triathlon",
}

TIER_BADGE_ICONS: dict[str, str] = {
    "full": "🏆",
    "half": "🥈",
    "t100": "💯",
    "olympic": "🥉",
    "quarter": "🏅",
    "sprint": "⚡",
    "mountain": "⛰️",
    "other": "🏊🚴🏃",
}


def classify_tier(swim_km: float, bike_km: float, run_km: float, total_elevation: float = 0.0) -> str:
    tier = "other"
    for name, predicate in TIER_RULES:
        if predicate(swim_km, bike_km, run_km):
            tier = name
            break
    if total_elevation > MOUNTAIN_ELEVATION_METERS and tier != "full":
        return "mountain"
    return tier


def group_activities_by_day(activities: list[Activity]) -> dict[date, list[Activity]]:
    grouped: dict[date, list[Activity]] = {}
    for activity in activities:
        grouped.setdefault(activity.date.date(), []).append(activity)
    return grouped


def _minutes_between(earlier: Activity, later: Activity) -> float:
    return (later.date - earlier.date).total_seconds() / 60.0


def _has_race_sequence(swim: Activity, bike: Activity, run: Activity) -> bool:
    if not (swim.date < bike.date < run.date):
        return False
    for gap in (_minutes_between(swim, bike), _minutes_between(bike, run)):
        if gap < MIN_TRANSITION_MINUTES or gap > MAX_TRANSITION_MINUTES:
            return False
    return _minutes_between(swim, run) / 60.0 <= MAX_EVENT_SPAN_HOURS


def _detect_day(day: date, day_activities: list[Activity]) -> TriathlonRace | None:
    swim = next((a for a in day_activities if a.type == "Swim"), None)
    bike = next((a for a in day_activities if a.type in CYCLING_TYPES), None)
    run = next((a for a in day_activities if a.type == "Run"), None)
    if swim is None or bike is None or run is None:
        return None

    named = any(NAMED_EVENT_RE.search(leg.name or "") for leg in (swim, bike, run))
    min_swim, min_bike, min_run = MIN_LEG_KM[named]
    if swim.distance_km < min_swim or bike.distance_km < min_bike or run.distance_km < min_run:
        return None

    if not named and not _has_race_sequence(swim, bike, run):
        logger.debug("Rejected unnamed swim/bike/run day %s: not a race sequence.", day)
        return None

    ordered = sorted((swim, bike, run), key=lambda leg: leg.date)
    first, last = ordered[0], ordered[-1]
    total_time = _minutes_between(first, last) + (last.moving_time_minutes or 0.0)
    total_elevation = sum(leg.elevation_gain_meters or 0.0 for leg in (swim, bike, run))

    return TriathlonRace(
        date=day,
        activities=TriathlonLegs(swim=swim, bike=bike, run=run),
        total_distance=swim.distance_km + bike.distance_km + run.distance_km,
        total_time=total_time,
        total_elevation=total_elevation,
        type=classify_tier(swim.distance_km, bike.distance_km, run.distance_km, total_elevation),
    )


def detect_triathlons(activities: list[Activity]) -> list[TriathlonRace]:
    triathlons = []
    for day, day_activities in group_activities_by_day(activities).items():
        race = _detect_day(day, day_activities)
        if race is not None:
            triathlons.append(race)
    return sorted(triathlons, key=lambda race: race.date, reverse=True)


def _clean_name(name: str) -> str:
    cleaned = TRAILING_SYMBOLS_RE.sub("", name.strip())
    cleaned = LEADING_SPORT_RE.sub("", cleaned)
    cleaned = TRAILING_SPORT_RE.sub("", cleaned)
    return TRAILING_SYMBOLS_RE.sub("", cleaned).strip()


def resolve_triathlon_name(race: TriathlonRace) -> str:
    legs = race.activities.in_order()
    best_name = next((leg.name for leg in legs if PREFERRED_NAME_RE.search(leg.name or "")), "")
    if not best_name:
        best_name = next(
            (leg.name for leg in legs if leg.name and not GENERIC_NAME_RE.match(leg.name.strip())),
            legs[0].name if legs else "",
        )

    cleaned = _clean_name(best_name or "")
    if cleaned and EVENT_KEYWORD_RE.search(cleaned):
        return cleaned
    return TIER_NAMES.get(race.type, TIER_NAMES["other"])


def triathlon_badge(tier: str) -> str:
    return f"{TIER_BADGE_ICONS.get(tier, TIER_BADGE_ICONS['other'])} {TIER_NAMES.get(tier, TIER_NAMES['other'])}"


def triathlon_highlight(race: TriathlonRace) -> RaceHighlight:
    return RaceHighlight(
        id=f"tri-{race.date.isoformat()}",
        name=resolve_triathlon_name(race),
        date=race.date,
        type="triathlon",
        distance=race.total_distance,
        duration=race.total_time,
        elevation=race.total_elevation,
        activities=race.activities.in_order(),
        badge=triathlon_badge(race.type),
    )
