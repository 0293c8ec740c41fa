"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the storefront happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. oneentry_project_url -> ONEENTRY_PROJECT_URL).

A missing ONEENTRY_PROJECT_URL is NOT a startup failure. The app must still
boot (health checks, static pages) without it; auth.client.ClientCache raises
ConfigurationError the first time a CMS client is actually needed.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("storefront.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    store_name: str = "Cillage Foundation"
    allowed_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # CMS / auth provider
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    oneentry_project_url: str = ""
    oneentry_token: str = ""
    lang_code: str = "en_US"
    request_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Session cookies
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    access_token_max_age: int = 60 * 60 * 24  # 1 day
    refresh_token_max_age: int = 60 * 60 * 24 * 7  # 7 days

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("oneentry_project_url")
    @classmethod
    def normalize_project_url(cls, value: str) -> str:
        """Strip whitespace and trailing slashes so paths can be joined with '/'."""
        return value.strip().rstrip("/")

    @property
    def cms_configured(self) -> bool:
        return bool(self.oneentry_project_url)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    settings = Settings()
    if not settings.cms_configured:
        logger.warning("ONEENTRY_PROJECT_URL is not set -- sign-up and sign-in will fail until it is configured")
    return settings
