from __future__ import annotations

from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from devkit.timezone import configure_process_timezone


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    APP_NAME: str = "tabibito"
    STORAGE_BACKEND: str = "memory"
    STORAGE_FILE_PATH: str = "runtime/tabibito-storage.json"
    REDIS_URL: str | None = None
    SESSION_TTL_DAYS: int = 30
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    API_TIMEOUT_SECONDS: float = 10.0
    API_SIMULATED_LATENCY_SECONDS: float = 1.0
    API_FAILURE_RATE: float = 0.2
    CONNECTIVITY_SUCCESS_RATE: float = 0.9
    UPLOAD_FAILURE_RATE: float = 0.1
    ERROR_LOG_LIMIT: int = 100
    LOG_LEVEL: str = "INFO"


def load_settings(app_name: str, **overrides: Any) -> AppSettings:
    configure_process_timezone()
    return AppSettings(APP_NAME=app_name, **overrides)
