"""
auth/client.py -- Session-scoped CMS client cache.

One ClientCache is created per application (api.main lifespan) and stored on
app.state. Handlers receive it through auth.dependencies.get_client_cache and
call get() to obtain the shared CMSClient.

Construction happens once, on first use:
  1. ONEENTRY_PROJECT_URL is required. Missing -> ConfigurationError, raised
     before any network call.
  2. The current request's refresh token is read best-effort. A failure is
     logged and construction continues without one.
  3. The client is built with the static project token, the configured
     locale, and a save callback that persists rotated refresh tokens.
  4. Anything that prevents a client from existing -> ClientInitError. The
     cache stays empty so the next call tries again.

First use is guarded by a lock: concurrent first requests build one client.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Optional

from auth.cookies import retrieve_refresh_token, store_refresh_token
from core.cms import CMSClient
from core.config import Settings, get_settings

logger = logging.getLogger("storefront.auth.client")


class ConfigurationError(RuntimeError):
    """Required configuration is missing."""


class ClientInitError(RuntimeError):
    """The CMS client could not be constructed."""


class ClientCache:
    def __init__(
        self,
        settings_provider: Callable[[], Settings] = get_settings,
        factory: Callable[..., Any] = CMSClient,
    ) -> None:
        self._settings_provider = settings_provider
        self._factory = factory
        self._client: Optional[CMSClient] = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._client is not None

    def get(self) -> CMSClient:
        """Return the cached client, constructing it on first call."""
        client = self._client
        if client is not None:
            return client
        with self._lock:
            # Re-check under the lock; another thread may have won.
            if self._client is None:
                self._client = self._build()
            return self._client

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def _build(self) -> CMSClient:
        settings = self._settings_provider()
        if not settings.oneentry_project_url:
            raise ConfigurationError("ONEENTRY_PROJECT_URL is missing")

        refresh_token: Optional[str] = None
        try:
            refresh_token = retrieve_refresh_token()
        except Exception:
            logger.exception("Error fetching refresh token -- continuing without one")

        try:
            client = self._factory(
                settings.oneentry_project_url,
                token=settings.oneentry_token,
                lang_code=settings.lang_code,
                refresh_token=refresh_token or None,
                save_function=store_refresh_token,
                timeout=settings.request_timeout,
            )
        except Exception as exc:
            raise ClientInitError("Failed to initialize API client") from exc

        if client is None:
            raise ClientInitError("Failed to initialize API client")
        logger.info("CMS client initialized for %s", settings.oneentry_project_url)
        return client
