from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..models import CYCLING_TYPES, Activity, ActivityTypeFilter, RaceHighlight, TitlePattern
from .highlight_matcher import match_custom_highlights
from .triathlon import detect_triathlons, triathlon_highlight


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RaceDetectionConfig:
    title_ignore_patterns: tuple[TitlePattern, ...] = ()
    activity_filters: tuple[ActivityTypeFilter, ...] = ()
    enable_triathlon_highlights: bool = True
    include_standard_races: bool = False


@dataclass
class RaceHighlightsResult:
    highlights: list[RaceHighlight] = field(default_factory=list)
    excluded_activity_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class StandardRace:
    type: str
    activity_types: frozenset[str]
    matches: Callable[[float], bool]
    badge: str
    race_badge: str | None = None


STANDARD_RACES: list[StandardRace] = [
    StandardRace(
        "half-marathon",
        frozenset({"Run"}),
        lambda km: 20 <= km <= 22,
        "🏃 Half Marathon",
        race_badge="🏆 Half Marathon (Race)",
    ),
    StandardRace("15k-run", frozenset({"Run"}), lambda km: 14 <= km < 20, "🏃 15K Run"),
    StandardRace("10k-run", frozenset({"Run"}), lambda km: 9.5 <= km <= 10.5, "🏃 10K Run"),
    StandardRace("5k-run", frozenset({"Run"}), lambda km: 4.5 <= km <= 5.5, "🏃 5K Run"),
    StandardRace("long-run", frozenset({"Run"}), lambda km: km >= 25, "🏃 Long Run"),
    StandardRace("long-ride", CYCLING_TYPES, lambda km: km >= 100, "🚴 Century Ride"),
]

RACE_WORKOUT_TYPE = 1


def _highlight_pool(activities: list[Activity], title_patterns: Iterable[TitlePattern]) -> list[Activity]:
    patterns = [pattern for pattern in title_patterns if pattern.exclude_from_highlights]
    return [activity for activity in activities if not any(p.matches(activity.name) for p in patterns)]


def detect_standard_races(activities: list[Activity]) -> list[RaceHighlight]:
    highlights = []
    for race in STANDARD_RACES:
        for activity in activities:
            if activity.type not in race.activity_types or not race.matches(activity.distance_km):
                continue
            badge = race.badge
            if race.race_badge and activity.workout_type == RACE_WORKOUT_TYPE:
                badge = race.race_badge
            highlights.append(
                RaceHighlight(
                    id=activity.id,
                    name=activity.name,
                    date=activity.date,
                    type=race.type,
                    distance=activity.distance_km,
                    duration=activity.moving_time_minutes,
                    elevation=activity.elevation_gain_meters,
                    badge=badge,
                    activity_type=activity.type,
                )
            )
    return highlights


def dedupe_highlights(highlights: Iterable[RaceHighlight]) -> list[RaceHighlight]:
    seen: set[str] = set()
    unique = []
    for highlight in highlights:
        ids = highlight.activity_ids()
        if ids & seen:
            logger.debug("Dropping duplicate highlight %s (%s).", highlight.id, highlight.type)
            continue
        seen.update(ids)
        unique.append(highlight)
    return unique


def detect_race_highlights_with_excluded(
    activities: list[Activity],
    config: RaceDetectionConfig | None = None,
) -> RaceHighlightsResult:
    config = config or RaceDetectionConfig()
    pool = _highlight_pool(activities, config.title_ignore_patterns)

    candidates: list[RaceHighlight] = []
    if config.enable_triathlon_highlights:
        candidates.extend(triathlon_highlight(race) for race in detect_triathlons(pool))

    matched = match_custom_highlights(activities, config.activity_filters, config.title_ignore_patterns)
    candidates.extend(matched.highlights)

    if config.include_standard_races:
        candidates.extend(detect_standard_races(pool))

    highlights = sorted(dedupe_highlights(candidates), key=lambda highlight: highlight.distance, reverse=True)
    return RaceHighlightsResult(highlights=highlights, excluded_activity_ids=set(matched.claimed_ids))


def detect_race_highlights(
    activities: list[Activity],
    config: RaceDetectionConfig | None = None,
) -> list[RaceHighlight]:
    return detect_race_highlights_with_excluded(activities, config).highlights
