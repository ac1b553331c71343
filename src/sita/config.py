"""
SITA Core - Configuration and settings.

Settings contains what the onboarding engine and its collaborators need.
Hosted database credentials are optional: without them the engine runs
local-only and remote saves are skipped.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Loaded from environment variables and an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    sita_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Supabase (optional - remote saves are skipped without them)
    supabase_url: str | None = None
    supabase_anon_key: str | None = None

    # Dev user for the CLI
    dev_user_id: str = "00000000-0000-0000-0000-000000000001"

    # Local durable channel
    local_store_path: Path = Path.home() / ".sita" / "local_storage.json"

    # Onboarding progress recovery
    progress_ttl_hours: int = 24  # Saved progress older than this is discarded
    progress_min_step: int = 2  # Must be past this step to offer a resume

    # Completion pipeline
    remote_save_timeout_seconds: float = 10.0

    # JSONL session logs (SITA_LOG_SESSIONS=1 to enable)
    sita_log_sessions: bool = False
    event_log_dir: Path = Path("session_logs")

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
