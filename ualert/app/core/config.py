"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Well-known names shared by every migration component (the default
receiver name, the contact label, the grouping labels) live here as
module constants; they are part of the output contract and are not
overridable from the environment.

Usage:
    from ualert.app.core.config import settings, DEFAULT_RECEIVER_NAME
    print(settings.LOG_LEVEL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


# ═══════════════════════════════════════════════════════════════════════════
# Well-known names
# ═══════════════════════════════════════════════════════════════════════════

# Receiver synthesised for the root route when there is not exactly one
# default channel.
DEFAULT_RECEIVER_NAME = "autogen-contact-point-default"

# Label stamped on migrated alerts; per-receiver routes regex-match on it.
CONTACT_LABEL = "__contacts__"

# Grouping keys of the root route, matching pre-migration notification grouping.
FOLDER_TITLE_LABEL = "grafana_folder"
ALERT_NAME_LABEL = "alertname"


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Unified Alerting Migration"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]
    CORS_ALLOW_ALL: bool = False

    # ── Migration ──
    INTEGRATION_UID_LENGTH: int = 9  # length of minted integration uids

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
