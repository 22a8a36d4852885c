"""STORYLINE — Central Configuration via Pydantic Settings."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

DEFAULT_BASE_URL = "https://users.storyline.app"


class Settings(BaseSettings):
    """SDK settings loaded from environment variables / .env file."""

    # ── Backend ──
    base_url: str = DEFAULT_BASE_URL
    auth_path: str = "/api/v1/users/validate-account/"
    campaigns_path: str = "/api/v1/users/track-user/"
    events_path: str = "/api/v1/users/track-action/"
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 2.0  # seconds

    # ── Initialization Gate ──
    ready_timeout: float = 5.0
    ready_poll_interval: float = 0.1

    # ── Local Store ──
    store_database_url: str = ""
    pending_events_key: str = "storyline_pending_events"

    # ── Campaigns ──
    overlay_cache_ttl: float = 15 * 60  # inline campaigns never expire

    # ── SDK ──
    log_level: str = "INFO"

    @property
    def effective_store_url(self) -> str:
        """Return the configured store URL, otherwise a local SQLite file."""
        if self.store_database_url:
            return self.store_database_url
        return "sqlite:///./storyline.db"

    model_config = {
        "env_prefix": "STORYLINE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


class Configuration(BaseModel):
    """Credentials supplied by the host app. Written once per SDK lifetime."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    app_id: str
    user_id: str
    base_url: Optional[str] = None

    def resolved_base_url(self, settings: Settings) -> str:
        return (self.base_url or settings.base_url).rstrip("/")


settings = Settings()
