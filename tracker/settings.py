from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracker.constants import ANALYSIS_RANGES, DEFAULT_ANALYSIS_RANGE, HISTORY_DAYS


class TrackerSettings(BaseSettings):
    api_base_url: str = Field("", alias="API_BASE_URL")
    backend_session_secret: str = Field("", alias="BACKEND_SESSION_SECRET")
    api_timeout_seconds: float = Field(10, alias="API_TIMEOUT_SECONDS")

    timezone: str = Field("America/Argentina/Buenos_Aires", alias="TRACKER_TIMEZONE")
    analysis_range_days: int = Field(DEFAULT_ANALYSIS_RANGE, alias="ANALYSIS_RANGE_DAYS")
    history_days: int = Field(HISTORY_DAYS, alias="HISTORY_DAYS")
    notification_ttl_seconds: float = Field(3, alias="NOTIFICATION_TTL_SECONDS")

    calendar_id: str = Field("primary", alias="CALENDAR_ID")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def effective_analysis_range(self) -> int:
        if self.analysis_range_days in ANALYSIS_RANGES:
            return self.analysis_range_days
        return DEFAULT_ANALYSIS_RANGE


_settings: TrackerSettings | None = None


def get_settings() -> TrackerSettings:
    global _settings
    if _settings is None:
        _settings = TrackerSettings()
    return _settings
