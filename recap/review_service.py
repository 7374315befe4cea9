from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .models import Activity, RaceHighlight, SportHighlights, YearStats, _serialize
from .review_settings import TARGET_STATS, ReviewSettings, filter_activities
from .stat_modules.race_highlights import RaceDetectionConfig, detect_race_highlights_with_excluded
from .stat_modules.sport_highlights import calculate_sport_highlights
from .stat_modules.year_stats import aggregate_year_stats


logger = logging.getLogger(__name__)


@dataclass
class YearInReview:
    activities_for_stats: list[Activity] = field(default_factory=list)
    highlights: list[RaceHighlight] = field(default_factory=list)
    sport_highlights: dict[str, SportHighlights] = field(default_factory=dict)
    excluded_activity_ids: set[str] = field(default_factory=set)
    year_stats: YearStats | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity_count": len(self.activities_for_stats),
            "highlights": _serialize(self.highlights),
            "sport_highlights": _serialize(self.sport_highlights),
            "excluded_activity_ids": sorted(self.excluded_activity_ids),
            "year_stats": _serialize(self.year_stats),
        }


def race_detection_config(settings: ReviewSettings) -> RaceDetectionConfig:
    return RaceDetectionConfig(
        title_ignore_patterns=tuple(settings.title_ignore_patterns),
        activity_filters=tuple(settings.activity_filters),
        enable_triathlon_highlights=settings.enable_triathlon_highlights,
        include_standard_races=settings.include_standard_races,
    )


def build_year_in_review(
    activities: list[Activity],
    settings: ReviewSettings,
    year: int | None = None,
) -> YearInReview:
    activities_for_stats = filter_activities(activities, settings, TARGET_STATS)

    detected = detect_race_highlights_with_excluded(activities, race_detection_config(settings))
    sport_highlights = calculate_sport_highlights(
        activities_for_stats,
        activity_filters=settings.activity_filters,
        excluded_activity_ids=detected.excluded_activity_ids,
        title_ignore_patterns=settings.title_ignore_patterns,
        include_in_highlights=settings.include_in_highlights,
    )
    year_stats = aggregate_year_stats(activities_for_stats, year) if year is not None else None

    logger.info(
        "Built review: %s stats activities, %s highlights, %s sports.",
        len(activities_for_stats),
        len(detected.highlights),
        len(sport_highlights),
    )
    return YearInReview(
        activities_for_stats=activities_for_stats,
        highlights=detected.highlights,
        sport_highlights=sport_highlights,
        excluded_activity_ids=detected.excluded_activity_ids,
        year_stats=year_stats,
    )
