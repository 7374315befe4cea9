import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from recap.config import Settings


class TestConfigFromEnv(unittest.TestCase):
    def test_defaults_resolve_under_state_dir(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"STATE_DIR": td}, clear=True):
                settings = Settings.from_env()

            state_dir = Path(td).resolve()
            self.assertEqual(settings.state_dir, state_dir)
            self.assertEqual(settings.activities_file, state_dir / "activities.json")
            self.assertEqual(settings.review_settings_file, state_dir / "review_settings.json")
            self.assertEqual(settings.review_output_file, state_dir / "year_in_review.json")
            self.assertEqual(settings.timezone, "UTC")
            self.assertEqual(settings.log_level, "INFO")
            self.assertIsNone(settings.review_year)
            self.assertTrue(settings.include_year_stats)

    def test_reads_overrides(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            absolute_output = str(Path(td) / "out" / "review.json")
            with patch.dict(
                os.environ,
                {
                    "STATE_DIR": td,
                    "ACTIVITIES_FILE": "cache/strava.json",
                    "REVIEW_OUTPUT_FILE": absolute_output,
                    "TZ": "Europe/Berlin",
                    "LOG_LEVEL": "debug",
                    "REVIEW_YEAR": "2024",
                    "INCLUDE_YEAR_STATS": "no",
                },
                clear=True,
            ):
                settings = Settings.from_env()

            self.assertEqual(settings.activities_file, Path(td).resolve() / "cache" / "strava.json")
            self.assertEqual(settings.review_output_file, Path(absolute_output))
            self.assertEqual(settings.timezone, "Europe/Berlin")
            self.assertEqual(settings.log_level, "DEBUG")
            self.assertEqual(settings.review_year, 2024)
            self.assertFalse(settings.include_year_stats)

    def test_timezone_takes_precedence_over_tz(self) -> None:
        with patch.dict(os.environ, {"TIMEZONE": "Asia/Tokyo", "TZ": "Europe/Berlin"}, clear=True):
            self.assertEqual(Settings.from_env().timezone, "Asia/Tokyo")

    def test_out_of_range_year_is_ignored(self) -> None:
        with patch.dict(os.environ, {"REVIEW_YEAR": "24"}, clear=True):
            self.assertIsNone(Settings.from_env().review_year)
        with patch.dict(os.environ, {"REVIEW_YEAR": "last"}, clear=True):
            self.assertIsNone(Settings.from_env().review_year)


class TestConfigValidate(unittest.TestCase):
    def test_validate_lists_problems(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"STATE_DIR": td}, clear=True):
                settings = Settings.from_env()

            with self.assertRaises(ValueError) as ctx:
                settings.validate()

        message = str(ctx.exception)
        self.assertIn("ACTIVITIES_FILE", message)
        self.assertIn("REVIEW_YEAR", message)

    def test_validate_passes_with_inputs(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            Path(td, "activities.json").write_text("[]", encoding="utf-8")
            with patch.dict(os.environ, {"STATE_DIR": td, "REVIEW_YEAR": "2024"}, clear=True):
                settings = Settings.from_env()
            settings.validate()

    def test_ensure_state_paths_creates_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            state_dir = Path(td) / "nested" / "state"
            with patch.dict(os.environ, {"STATE_DIR": str(state_dir)}, clear=True):
                settings = Settings.from_env()
            settings.ensure_state_paths()
            self.assertTrue(state_dir.is_dir())


if __name__ == "__main__":
    unittest.main()
