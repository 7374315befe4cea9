from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path

from .activity_transform import transform_activities
from .config import Settings
from .numeric_utils import minutes_to_pace
from .review_service import build_year_in_review
from .review_settings import load_review_settings
from .storage import read_json, write_json


logger = logging.getLogger(__name__)


def _activity_payloads(raw: object) -> list | None:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("activities"), list):
        return raw["activities"]
    return None


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.year is not None:
        overrides["review_year"] = args.year
    if args.activities is not None:
        overrides["activities_file"] = args.activities
    if args.settings is not None:
        overrides["review_settings_file"] = args.settings
    if args.output is not None:
        overrides["review_output_file"] = args.output
    return replace(settings, **overrides)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build a year-in-review summary from cached Strava activities.")
    parser.add_argument("-y", "--year", type=int, default=None, help="Calendar year for the year stats.")
    parser.add_argument("--activities", type=Path, default=None, help="Activity JSON file (list of Strava payloads).")
    parser.add_argument("--settings", type=Path, default=None, help="Year-in-review settings JSON file.")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Where to write the review JSON.")
    parser.add_argument("--stdout", action="store_true", help="Print the review instead of writing it.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    settings = _apply_overrides(settings, args)
    try:
        settings.validate()
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    settings.ensure_state_paths()

    payloads = _activity_payloads(read_json(settings.activities_file))
    if payloads is None:
        logger.error("No readable activity list at %s.", settings.activities_file)
        return 1

    activities = transform_activities(payloads, settings.timezone)
    review_settings = load_review_settings(settings.review_settings_file)
    review = build_year_in_review(
        activities,
        review_settings,
        year=settings.review_year if settings.include_year_stats else None,
    )
    for sport, highlights in review.sport_highlights.items():
        if highlights.average_speed is not None:
            average = f"{highlights.average_speed:.1f} km/h"
        else:
            unit = "/100m" if sport == "swimming" else "/km"
            average = minutes_to_pace(highlights.average_pace, unit=unit)
        logger.info(
            "%s: %s activities, %.1f km, avg %s",
            sport,
            highlights.activity_count,
            highlights.total_distance,
            average,
        )
    payload = review.to_dict()

    if args.stdout:
        print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
        return 0

    write_json(settings.review_output_file, payload)
    logger.info("Wrote year in review for %s activities to %s.", len(activities), settings.review_output_file)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
