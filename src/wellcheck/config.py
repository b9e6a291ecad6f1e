from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./wellcheck.db"
    timezone: str = "Asia/Seoul"  # the elder's local clock; sleep windows use it

    firestore_project_id: str = ""
    firestore_base_url: str = "https://firestore.googleapis.com/v1"
    firestore_api_token: str = ""
    remote_timeout_seconds: float = 10.0
    remote_max_retries: int = 3
    remote_backoff_seconds: float = 0.5

    batch_interval_hours: float = 2
    long_inactivity_hours: float = 8
    significant_distance_km: float = 0.5
    location_max_staleness_hours: float = 4
    survival_alert_hours: float = 12
    food_alert_hours: float = 8

    usage_check_minutes: int = 15
    alert_check_minutes: int = 60

    telegram_bot_token: str = ""
    telegram_family_chat_id: Optional[int] = None

    api_host: str = "127.0.0.1"
    api_port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def local_now(settings: Optional[Settings] = None) -> datetime:
    """Current wall-clock time in the configured zone, as a naive datetime."""
    settings = settings or get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)
