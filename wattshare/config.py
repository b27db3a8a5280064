"""Runtime settings, read from the environment and an optional ``.env`` file."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wattshare.domain.models import TIME_OF_DAY_PATTERN


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WATTSHARE_", env_file=".env", env_file_encoding="utf-8"
    )

    project_name: str = "Shared Appliance Scheduler"

    # "heuristic" needs no network access; "openai" calls the chat completions API.
    generator: Literal["heuristic", "openai"] = "heuristic"
    openai_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None

    # Zone used to decide which weekday is "today" for new intervals.
    timezone: str = "Europe/Oslo"

    suggestion_day_start: str = "06:00"
    suggestion_day_end: str = "23:59"
    suggestion_step_minutes: int = 15

    log_level: str = "INFO"

    @field_validator("suggestion_day_start", "suggestion_day_end")
    @classmethod
    def _check_time_of_day(cls, value: str) -> str:
        if not TIME_OF_DAY_PATTERN.fullmatch(value):
            raise ValueError(f"Invalid time of day: {value!r}")
        return value

    @field_validator("suggestion_step_minutes")
    @classmethod
    def _check_step(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("suggestion_step_minutes must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
