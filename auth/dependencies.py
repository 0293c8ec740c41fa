"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth layer.

get_client_cache() hands route handlers the ClientCache owned by the app
(created in the api.main lifespan). is_signed_in() is the soft session check
used by templates and the landing page.

Session state lives in the CMS, not here: the presence of an access_token
cookie is the only signal this app has. Tokens are opaque and never decoded.

Layer rule: no imports from web/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.client import ClientCache
from auth.cookies import ACCESS_TOKEN_COOKIE


def get_client_cache(request: Request) -> ClientCache:
    """Return the app's ClientCache. Raises HTTP 503 if startup never created one."""
    cache = getattr(request.app.state, "client_cache", None)
    if cache is None:
        raise HTTPException(
            status_code=503,
            detail={"code": "unavailable", "message": "Authentication service is not ready."},
        )
    return cache


def is_signed_in(request: Request) -> bool:
    """True when the request carries an access token cookie."""
    return bool(request.cookies.get(ACCESS_TOKEN_COOKIE))
