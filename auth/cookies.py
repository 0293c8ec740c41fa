"""
auth/cookies.py -- Request-bound cookie jar and the refresh-token store.

The CMS client is a process-wide object, but the refresh token it rotates
belongs to whichever request triggered the rotation. A ContextVar carries the
current request's CookieJar so code deep in the call stack (the client's save
callback) can write a cookie without a reference to the Request/Response.

Lifecycle (see api.main.cookie_jar_scope middleware):
  1. Middleware builds a CookieJar from request.cookies and binds it.
  2. Handlers and callbacks read/write through the jar.
  3. After the handler returns, the middleware applies pending writes to the
     outgoing response and unbinds the jar.

Calling any store function outside a request raises LookupError.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Optional

from core.config import get_settings

ACCESS_TOKEN_COOKIE = "access_token"
REFRESH_TOKEN_COOKIE = "refresh_token"


@dataclass
class _PendingCookie:
    value: Optional[str]  # None = delete
    max_age: Optional[int] = None


class CookieJar:
    """Incoming cookies plus the writes to apply to the response."""

    def __init__(self, incoming: Optional[Mapping[str, str]] = None) -> None:
        self._incoming = dict(incoming or {})
        self._pending: dict[str, _PendingCookie] = {}

    def get(self, name: str) -> Optional[str]:
        if name in self._pending:
            return self._pending[name].value
        return self._incoming.get(name)

    def set(self, name: str, value: str, max_age: Optional[int] = None) -> None:
        self._pending[name] = _PendingCookie(value=value, max_age=max_age)

    def delete(self, name: str) -> None:
        self._pending[name] = _PendingCookie(value=None)

    @property
    def pending(self) -> dict[str, _PendingCookie]:
        return dict(self._pending)

    def apply(self, response, secure: bool = False) -> None:
        """Write pending cookies onto a Starlette response.

        httponly=True: JS cannot read the tokens (XSS mitigation).
        samesite="lax": not sent on cross-site POST (CSRF mitigation).
        secure: HTTPS-only when SECURE_COOKIES=true.
        """
        for name, cookie in self._pending.items():
            if cookie.value is None:
                response.delete_cookie(name)
                continue
            response.set_cookie(
                name,
                value=cookie.value,
                max_age=cookie.max_age,
                httponly=True,
                samesite="lax",
                secure=secure,
            )


_current_jar: ContextVar[CookieJar] = ContextVar("cookie_jar")


def bind_cookie_jar(jar: CookieJar) -> Token:
    return _current_jar.set(jar)


def reset_cookie_jar(token: Token) -> None:
    _current_jar.reset(token)


def current_cookie_jar() -> CookieJar:
    try:
        return _current_jar.get()
    except LookupError:
        raise LookupError("No cookie jar is bound to the current request") from None


# ---------------------------------------------------------------------------
# Token store
# ---------------------------------------------------------------------------


def retrieve_refresh_token() -> Optional[str]:
    return current_cookie_jar().get(REFRESH_TOKEN_COOKIE)


def store_refresh_token(token: str) -> None:
    """Persist a rotated refresh token. No explicit expiry (session cookie)."""
    current_cookie_jar().set(REFRESH_TOKEN_COOKIE, token)


def store_session_tokens(access_token: str, refresh_token: str) -> None:
    """Persist both tokens after a successful login (1 day / 7 days by default)."""
    settings = get_settings()
    jar = current_cookie_jar()
    jar.set(ACCESS_TOKEN_COOKIE, access_token, max_age=settings.access_token_max_age)
    jar.set(REFRESH_TOKEN_COOKIE, refresh_token, max_age=settings.refresh_token_max_age)


def store_access_token(access_token: str) -> None:
    current_cookie_jar().set(ACCESS_TOKEN_COOKIE, access_token, max_age=get_settings().access_token_max_age)


def clear_session_tokens() -> None:
    jar = current_cookie_jar()
    jar.delete(ACCESS_TOKEN_COOKIE)
    jar.delete(REFRESH_TOKEN_COOKIE)
