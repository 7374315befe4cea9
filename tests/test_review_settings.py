import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from recap.models import Activity, TitlePattern
from recap.review_settings import (
    TARGET_HIGHLIGHTS,
    TARGET_STATS,
    ReviewSettings,
    add_ignore_pattern,
    filter_activities,
    load_review_settings,
    matches_title_pattern,
    normalize_operator,
    parse_review_settings,
    remove_ignore_pattern,
    save_review_settings,
    update_ignore_pattern,
)


def _activity(activity_id: str, activity_type: str, name: str) -> Activity:
    return Activity(
        id=activity_id,
        name=name,
        type=activity_type,
        date=datetime(2024, 5, 1, 8, 0),
        distance_km=10.0,
        moving_time_minutes=40.0,
        duration_minutes=40.0,
    )


class TestParseReviewSettings(unittest.TestCase):
    def test_parses_persisted_camel_case_payload(self) -> None:
        settings = parse_review_settings(
            {
                "titleIgnorePatterns": [
                    {"pattern": "Commute", "excludeFromHighlights": "yes", "excludeFromStats": "1"},
                    "Warmup",
                    {"pattern": "   "},
                ],
                "activityFilters": [
                    {
                        "activityType": "Run",
                        "distanceFilters": [
                            {"id": "f1", "operator": "±", "value": "21.1"},
                            {"operator": ">=", "value": 26.2, "unit": "mi"},
                        ],
                        "titlePatterns": ["parkrun", "parkrun", ""],
                    }
                ],
                "excludedActivityTypes": ["Walk", "Walk", "Yoga"],
                "excludeVirtualPerSport": {"cycling": {"highlights": "on", "stats": False}},
                "activityTypeSettings": {"includeInHighlights": ["Run", "Ride"]},
                "specialOptions": {"enableTriathlonHighlights": "off", "includeStandardRaces": True},
            }
        )

        self.assertEqual(
            settings.title_ignore_patterns,
            (TitlePattern("Commute", True, True), TitlePattern("Warmup", True, False)),
        )
        run_filter = settings.activity_filters[0]
        self.assertEqual(run_filter.activity_type, "Run")
        self.assertEqual(run_filter.title_patterns, ("parkrun",))
        self.assertEqual(run_filter.distance_filters[0].operator, "≈")
        self.assertEqual(run_filter.distance_filters[0].value, 21.1)
        self.assertEqual(run_filter.distance_filters[0].id, "f1")
        self.assertEqual(run_filter.distance_filters[1].operator, "gte")
        self.assertEqual(run_filter.distance_filters[1].unit, "mi")
        self.assertEqual(settings.excluded_activity_types, frozenset({"Walk", "Yoga"}))
        self.assertTrue(settings.exclude_virtual_per_sport["cycling"][TARGET_HIGHLIGHTS])
        self.assertFalse(settings.exclude_virtual_per_sport["cycling"][TARGET_STATS])
        self.assertEqual(settings.include_in_highlights, frozenset({"Run", "Ride"}))
        self.assertFalse(settings.enable_triathlon_highlights)
        self.assertTrue(settings.include_standard_races)

    def test_accepts_snake_case_aliases(self) -> None:
        settings = parse_review_settings(
            {
                "title_ignore_patterns": [{"pattern": "Easy", "exclude_from_highlights": False}],
                "activity_filters": [{"activity_type": "Swim", "distance_filters": [{"operator": "eq", "value": 1}]}],
            }
        )

        self.assertFalse(settings.title_ignore_patterns[0].exclude_from_highlights)
        self.assertEqual(settings.activity_filters[0].distance_filters[0].operator, "eq")
        self.assertIsNone(settings.include_in_highlights)

    def test_malformed_distance_filter_is_dropped_with_warning(self) -> None:
        with self.assertLogs("recap.review_settings", level="WARNING"):
            settings = parse_review_settings(
                {
                    "activityFilters": [
                        {
                            "activityType": "Run",
                            "distanceFilters": [
                                {"operator": "between", "value": 5},
                                {"operator": "gte", "value": "far"},
                                {"operator": "lt", "value": 3},
                            ],
                        }
                    ]
                }
            )

        self.assertEqual([f.operator for f in settings.activity_filters[0].distance_filters], ["lt"])

    def test_non_list_fields_are_skipped_with_warning(self) -> None:
        with self.assertLogs("recap.review_settings", level="WARNING") as logs:
            settings = parse_review_settings(
                {
                    "titleIgnorePatterns": {"pattern": "x"},
                    "activityFilters": [
                        {"activityType": "Run", "distanceFilters": 5, "titlePatterns": "parkrun"},
                    ],
                    "activityTypeSettings": {"includeInHighlights": "Run"},
                }
            )

        self.assertEqual(settings.title_ignore_patterns, ())
        self.assertEqual(settings.activity_filters[0].distance_filters, ())
        self.assertEqual(settings.activity_filters[0].title_patterns, ())
        self.assertIsNone(settings.include_in_highlights)
        self.assertTrue(any("distanceFilters" in line for line in logs.output))

        with self.assertLogs("recap.review_settings", level="WARNING"):
            self.assertEqual(parse_review_settings({"activityFilters": "Run"}).activity_filters, ())

    def test_non_finite_numbers_do_not_raise(self) -> None:
        with self.assertLogs("recap.review_settings", level="WARNING"):
            settings = parse_review_settings(
                {
                    "titleIgnorePatterns": [{"pattern": "Commute", "excludeFromHighlights": float("nan")}],
                    "activityFilters": [
                        {"activityType": "Run", "distanceFilters": [{"operator": "gte", "value": float("inf")}]},
                    ],
                    "specialOptions": {"enableTriathlonHighlights": float("inf")},
                }
            )

        self.assertTrue(settings.title_ignore_patterns[0].exclude_from_highlights)
        self.assertEqual(settings.activity_filters[0].distance_filters, ())
        self.assertTrue(settings.enable_triathlon_highlights)

    def test_non_dict_payload_gives_defaults(self) -> None:
        self.assertEqual(parse_review_settings(["nope"]), ReviewSettings())

    def test_operator_aliases(self) -> None:
        self.assertEqual(normalize_operator("≥"), "gte")
        self.assertEqual(normalize_operator("<"), "lt")
        self.assertEqual(normalize_operator("~"), "≈")
        self.assertEqual(normalize_operator("EQ"), "eq")
        self.assertIsNone(normalize_operator("between"))


class TestReviewSettingsStorage(unittest.TestCase):
    def test_missing_file_uses_default_filters(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            settings = load_review_settings(Path(td) / "missing.json")

        by_type = {item.activity_type: item for item in settings.activity_filters}
        self.assertEqual(sorted(by_type), ["Ride", "Run", "Swim", "VirtualRide"])
        self.assertEqual([f.value for f in by_type["Run"].distance_filters], [5, 10, 15, 21, 42])
        self.assertTrue(all(f.operator == "≈" for f in by_type["Swim"].distance_filters))

    def test_save_then_load_keeps_settings(self) -> None:
        settings = parse_review_settings(
            {
                "titleIgnorePatterns": [{"pattern": "Commute", "excludeFromStats": True}],
                "activityFilters": [{"activityType": "Ride", "distanceFilters": [{"operator": "gte", "value": 100}]}],
                "excludedActivityTypes": ["Walk"],
                "activityTypeSettings": {"includeInHighlights": ["Ride"]},
            }
        )
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "review_settings.json"
            save_review_settings(path, settings)
            loaded = load_review_settings(path)

        self.assertEqual(loaded, settings)


class TestIgnorePatternEditing(unittest.TestCase):
    def test_add_update_remove(self) -> None:
        settings = add_ignore_pattern(ReviewSettings(), "  Commute ")
        settings = add_ignore_pattern(settings, "Commute")
        settings = add_ignore_pattern(settings, "")
        self.assertEqual([p.pattern for p in settings.title_ignore_patterns], ["Commute"])

        settings = update_ignore_pattern(settings, "Commute", exclude_from_stats=True)
        self.assertTrue(settings.title_ignore_patterns[0].exclude_from_stats)

        settings = remove_ignore_pattern(settings, "Commute")
        self.assertEqual(settings.title_ignore_patterns, ())


class TestFilterActivities(unittest.TestCase):
    def test_targets_are_independent(self) -> None:
        settings = ReviewSettings(
            title_ignore_patterns=(
                TitlePattern("commute", exclude_from_highlights=True, exclude_from_stats=False),
                TitlePattern("test", exclude_from_highlights=False, exclude_from_stats=True),
            ),
            excluded_activity_types=frozenset({"Walk"}),
            exclude_virtual_per_sport={
                "cycling": {"highlights": False, "stats": True},
                "running": {"highlights": False, "stats": False},
                "swimming": {"highlights": False, "stats": False},
            },
        )
        activities = [
            _activity("c", "Ride", "Commute"),
            _activity("t", "Run", "Test run"),
            _activity("w", "Walk", "Evening walk"),
            _activity("z", "VirtualRide", "Zwift"),
            _activity("r", "Run", "Long run"),
        ]

        self.assertEqual([a.id for a in filter_activities(activities, settings, TARGET_HIGHLIGHTS)], ["t", "z", "r"])
        self.assertEqual([a.id for a in filter_activities(activities, settings, TARGET_STATS)], ["c", "r"])

    def test_matches_title_pattern_is_case_insensitive(self) -> None:
        patterns = [TitlePattern("Commute")]
        self.assertTrue(matches_title_pattern("morning COMMUTE", patterns))
        self.assertFalse(matches_title_pattern("morning COMMUTE", patterns, TARGET_STATS))
        self.assertFalse(matches_title_pattern("", patterns))


if __name__ == "__main__":
    unittest.main()
