"""
Application Configuration.

Pydantic Settings model for the Budget Tracker API.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, SecretStr, field_validator, model_validator

from app.models.enums import Environment, StorageMode


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Server ---
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=3001, ge=1, le=65535)
    API_VERSION: str = "1.0.0"

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # --- Security ---
    JWT_SECRET: SecretStr = SecretStr("")  # Configured only; no route enforces auth yet
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_MS: int = Field(default=900_000, gt=0)  # 15 minutes
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, gt=0)

    # --- Import / export ---
    MAX_FILE_SIZE: int = 5_242_880  # 5 MB

    # --- Storage ---
    STORAGE_MODE: StorageMode = StorageMode.LOCAL
    LOCALSTORAGE_PATH: Path = Path("./data")
    LOCALSTORAGE_PERSIST: bool = True

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "budget_tracker.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def _check_storage_credentials(self) -> "AppConfig":
        """Reject or warn about incomplete configuration at startup.

        Production deployments backed by Supabase must supply both the
        project URL and a key.  Anywhere else a warning is enough so the
        developer can still boot the API against local JSON storage.
        """
        _log = logging.getLogger("app.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; configuration loaded from "
                "environment variables or defaults."
            )

        if self.STORAGE_MODE == StorageMode.DATABASE and not self.has_supabase_credentials:
            if self.ENVIRONMENT == Environment.PRODUCTION:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) "
                    "are required in production when STORAGE_MODE=database"
                )
            _log.warning(
                "Supabase credentials are missing; database storage "
                "requests will fail until they are configured."
            )

        if not self.JWT_SECRET.get_secret_value():
            _log.warning("JWT_SECRET is empty.")

        return self

    # --- Derived values ---

    @property
    def cors_origin_list(self) -> list[str]:
        """``CORS_ORIGINS`` split on commas, blanks removed."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def supabase_key(self) -> str:
        """The service-role key when present, otherwise the anon key."""
        return (
            self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value()
            or self.SUPABASE_ANON_KEY.get_secret_value()
        )

    @property
    def has_supabase_credentials(self) -> bool:
        return bool(self.SUPABASE_URL and self.supabase_key)

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.RATE_LIMIT_WINDOW_MS / 1000


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern to avoid the lock overhead on the fast path while remaining
    thread-safe during first initialisation.

    Prefer constructor injection of ``AppConfig``; this factory serves
    the entry point and the logger's lazy defaults.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
