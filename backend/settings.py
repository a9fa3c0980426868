from __future__ import annotations

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(..., alias="DATABASE_URL")
    backend_session_secret: str = Field(..., alias="BACKEND_SESSION_SECRET")

    tracker_timezone: str = Field("America/Argentina/Buenos_Aires", alias="TRACKER_TIMEZONE")

    allowed_owner_ids_raw: str = Field("", alias="ALLOWED_OWNER_IDS")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_owner_ids(self) -> List[str]:
        return [owner.strip() for owner in self.allowed_owner_ids_raw.split(",") if owner.strip()]


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
