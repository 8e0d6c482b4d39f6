from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    rapidapi_key: str = ""
    rapidapi_host: str = "tiktok-scraper7.p.rapidapi.com"
    database_url: str = "sqlite:///./tiktrack.db"
    refresh_threshold_hours: float = 1.0
    refresh_check_minutes: int = 15
    provider_timeout_seconds: float = 30.0
    refresh_concurrency: int = 4
    posts_per_refresh: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
