from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv


load_dotenv()


EnvGetter = Callable[[str], str | None]


def _bool_env(name: str, default: bool, *, getenv: EnvGetter = os.getenv) -> bool:
    value = getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _str_env(*names: str, default: str = "", getenv: EnvGetter = os.getenv) -> str:
    for name in names:
        value = getenv(name)
        if value is not None:
            return value.strip()
    return default


def _optional_int_env(
    name: str,
    minimum: int | None = None,
    maximum: int | None = None,
    *,
    getenv: EnvGetter = os.getenv,
) -> int | None:
    value = getenv(name)
    if value is None or not value.strip():
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None

    if minimum is not None and parsed < minimum:
        return None
    if maximum is not None and parsed > maximum:
        return None
    return parsed


def _state_file(state_dir: Path, name: str, default: str) -> Path:
    configured = Path(_str_env(name, default=default) or default)
    if configured.is_absolute():
        return configured
    return state_dir / configured


@dataclass(frozen=True)
class Settings:
    log_level: str
    timezone: str

    state_dir: Path
    activities_file: Path
    review_settings_file: Path
    review_output_file: Path

    review_year: int | None
    include_year_stats: bool

    @classmethod
    def from_env(cls) -> "Settings":
        state_dir = Path(os.getenv("STATE_DIR", "state")).resolve()

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            timezone=_str_env("TIMEZONE", "TZ", default="UTC"),
            state_dir=state_dir,
            activities_file=_state_file(state_dir, "ACTIVITIES_FILE", "activities.json"),
            review_settings_file=_state_file(state_dir, "REVIEW_SETTINGS_FILE", "review_settings.json"),
            review_output_file=_state_file(state_dir, "REVIEW_OUTPUT_FILE", "year_in_review.json"),
            review_year=_optional_int_env("REVIEW_YEAR", minimum=1970, maximum=9999),
            include_year_stats=_bool_env("INCLUDE_YEAR_STATS", True),
        )

    def validate(self) -> None:
        problems = []
        if not self.activities_file.exists():
            problems.append(f"ACTIVITIES_FILE not found at {self.activities_file}")
        if self.include_year_stats and self.review_year is None:
            problems.append("REVIEW_YEAR is required when INCLUDE_YEAR_STATS is enabled")
        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

    def ensure_state_paths(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
