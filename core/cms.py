"""
core/cms.py -- Thin HTTP client for the headless CMS (OneEntry REST API).

Only the calls the storefront exercises are implemented:
  get_form_by_marker  -- GET  /api/content/forms/marker/{marker}
  auth                -- POST /api/content/users-auth-providers/marker/{provider}/users/auth
  sign_up             -- POST /api/content/users-auth-providers/marker/{provider}/users/sign-up
  refresh             -- POST /api/content/users-auth-providers/marker/{provider}/users/refresh

Every request carries the static project token in the x-app-token header.
The provider owns the wire format; this module forwards payloads as given and
returns decoded JSON bodies unchanged.

Refresh token rotation: whenever the provider hands back a refreshToken that
differs from the one the client holds, the client adopts it and calls the
save_function it was constructed with. The caller decides where the token is
persisted (auth.cookies.store_refresh_token in the app).

Errors: any non-2xx response or transport failure raises CMSError. The
status_code is None for transport failures (timeouts, DNS, refused
connections).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Optional

import requests

logger = logging.getLogger("storefront.cms")

_FORMS_PATH = "/api/content/forms/marker/{marker}"
_AUTH_PROVIDER_PATH = "/api/content/users-auth-providers/marker/{marker}/users/{action}"


class _RejectAllCookies(DefaultCookiePolicy):
    """Cookie policy that never stores a cookie from a CMS response."""

    def set_ok(self, cookie, request) -> bool:
        return False


class CMSError(Exception):
    """A failed CMS call. Carries the provider's status code and message."""

    def __init__(self, status_code: Optional[int], message: str, body: Any = None) -> None:
        self.status_code = status_code
        self.message = message
        self.body = body
        super().__init__(f"[{status_code}] {message}" if status_code else message)


class CMSClient:
    def __init__(
        self,
        project_url: str,
        token: str = "",
        lang_code: str = "en_US",
        refresh_token: Optional[str] = None,
        save_function: Optional[Callable[[str], None]] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.project_url = project_url.rstrip("/")
        self.lang_code = lang_code
        self.refresh_token = refresh_token
        self.timeout = timeout
        self._save_function = save_function
        # max_redirects=3 replaces the requests default of 30 -- the CMS is a
        # single known host, redirect chains beyond that are not expected.
        self._session = session or requests.Session()
        self._session.max_redirects = 3
        self._session.headers.update({"x-app-token": token, "Accept": "application/json"})
        # One session serves every user of the process: CMS cookies are never stored.
        self._session.cookies.set_policy(_RejectAllCookies())

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    def get_form_by_marker(self, marker: str, lang_code: Optional[str] = None) -> dict[str, Any]:
        """Fetch a form template (including its attributes) by marker."""
        return self._request(
            "GET",
            _FORMS_PATH.format(marker=marker),
            params={"langCode": lang_code or self.lang_code},
        )

    # ------------------------------------------------------------------
    # Auth provider
    # ------------------------------------------------------------------

    def auth(self, provider_marker: str, data: dict[str, Any]) -> dict[str, Any]:
        """Authenticate a user. Returns userIdentifier, accessToken and refreshToken on success."""
        result = self._request(
            "POST",
            _AUTH_PROVIDER_PATH.format(marker=provider_marker, action="auth"),
            params={"langCode": self.lang_code},
            json=data,
        )
        # A body without userIdentifier is a refused login; its tokens are never adopted.
        if isinstance(result, dict) and result.get("userIdentifier"):
            self._rotate(result.get("refreshToken"))
        return result

    def sign_up(self, provider_marker: str, data: dict[str, Any]) -> dict[str, Any]:
        """Register a user. Returns the created user entity."""
        return self._request(
            "POST",
            _AUTH_PROVIDER_PATH.format(marker=provider_marker, action="sign-up"),
            params={"langCode": self.lang_code},
            json=data,
        )

    def refresh(self, provider_marker: str, refresh_token: Optional[str] = None) -> dict[str, Any]:
        """Exchange a refresh token for a new access/refresh pair.

        Uses the explicit refresh_token argument when given, otherwise the
        token the client currently holds.
        """
        token = refresh_token or self.refresh_token
        if not token:
            raise CMSError(401, "No refresh token available.")
        result = self._request(
            "POST",
            _AUTH_PROVIDER_PATH.format(marker=provider_marker, action="refresh"),
            params={"langCode": self.lang_code},
            json={"refreshToken": token},
        )
        if isinstance(result, dict):
            self._rotate(result.get("refreshToken"))
        return result

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rotate(self, new_token: Optional[str]) -> None:
        if not new_token or new_token == self.refresh_token:
            return
        self.refresh_token = new_token
        if self._save_function is not None:
            self._save_function(new_token)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.project_url}{path}"
        try:
            resp = self._session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("CMS %s %s failed: %s", method, path, e)
            raise CMSError(None, "CMS request failed.") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.ok:
            message = resp.reason or "CMS request failed."
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
                # Validation errors come back as a list of messages
                if isinstance(message, list):
                    message = "; ".join(str(m) for m in message)
            logger.info("CMS %s %s returned %d", method, path, resp.status_code)
            raise CMSError(resp.status_code, str(message), body)

        if body is None:
            raise CMSError(resp.status_code, "CMS returned a non-JSON response.")
        return body
