"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and api/routes/v1/auth.py
(to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
Separate instances per module would each count in isolation and never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def credential_limit() -> str:
    """Limit applied to credential-bearing routes (login, sign-up)."""
    return get_settings().login_rate_limit
