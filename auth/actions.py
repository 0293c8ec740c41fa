"""
auth/actions.py -- Sign-up and sign-in actions backed by the CMS.

Two symmetric pairs, each a single round trip with no retry:
  fetch_signup_schema / submit_signup
  fetch_login_schema  / submit_login

plus refresh_session, which rotates the session tokens.

Error channels:
  Rejected(message)  -- the provider refused the credentials (401) or the
                        registration (400). Returned, never raised.
  ActionError        -- anything else: missing configuration, network
                        failures, unexpected provider responses. The message
                        is generic; the cause is logged here and chained on
                        the exception, never shown to the user.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from typing import Any

from auth.client import ClientCache
from auth.cookies import retrieve_refresh_token, store_access_token, store_session_tokens
from auth.models import Outcome, Rejected, Success
from core.cms import CMSError
from core.models import (
    AUTH_PROVIDER_MARKER,
    LOGIN_FORM_MARKER,
    SIGNUP_FORM_MARKER,
    FormField,
    parse_form_attributes,
)

logger = logging.getLogger("storefront.auth.actions")

FETCH_FAILED = "Fetching form data failed."
SIGNUP_FAILED = "Account Creation Failed. Please try again later."
LOGIN_FAILED = "Failed to login. Please try again."
REFRESH_FAILED = "Failed to refresh session. Please sign in again."

# Placeholder contacts sent with every registration. The CMS project requires
# notificationData but the storefront does not collect phone numbers.
_PLACEHOLDER_PHONE = "+1234567890"


class ActionError(Exception):
    """Generic, user-safe failure of an auth action."""


# ---------------------------------------------------------------------------
# Form schema
# ---------------------------------------------------------------------------


def fetch_signup_schema(cache: ClientCache) -> list[FormField]:
    """Return the sign-up form fields. Raises ActionError on any failure."""
    return _fetch_schema(cache, SIGNUP_FORM_MARKER)


def fetch_login_schema(cache: ClientCache) -> list[FormField]:
    """Return the sign-in form fields. Raises ActionError on any failure."""
    return _fetch_schema(cache, LOGIN_FORM_MARKER)


def _fetch_schema(cache: ClientCache, marker: str) -> list[FormField]:
    try:
        client = cache.get()
        form = client.get_form_by_marker(marker, client.lang_code)
        return parse_form_attributes(form, client.lang_code)
    except Exception as exc:
        logger.exception("Fetching form %r failed", marker)
        raise ActionError(FETCH_FAILED) from exc


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


def build_signup_payload(email: str, password: str, name: str) -> dict[str, Any]:
    return {
        "formIdentifier": SIGNUP_FORM_MARKER,
        "authData": [
            {"marker": "email", "value": email},
            {"marker": "password", "value": password},
        ],
        "formData": [
            {"marker": "name", "type": "string", "value": name},
        ],
        "notificationData": {
            "email": email,
            "phonePush": [_PLACEHOLDER_PHONE],
            "phoneSMS": _PLACEHOLDER_PHONE,
        },
    }


def submit_signup(cache: ClientCache, email: str, password: str, name: str) -> Outcome:
    """Register a new account via the email provider.

    Returns Success with the provider response verbatim, or Rejected when the
    provider answers 400 (e.g. the email is already registered).
    """
    try:
        client = cache.get()
        response = client.sign_up(AUTH_PROVIDER_MARKER, build_signup_payload(email, password, name))
    except CMSError as exc:
        if exc.status_code == 400:
            logger.info("Sign-up rejected: %s", exc.message)
            return Rejected(message=exc.message)
        logger.exception("Sign-up failed")
        raise ActionError(SIGNUP_FAILED) from exc
    except Exception as exc:
        logger.exception("Sign-up failed")
        raise ActionError(SIGNUP_FAILED) from exc

    return Success(payload=response if isinstance(response, dict) else {})


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


def build_login_payload(email: str, password: str) -> dict[str, Any]:
    return {
        "authData": [
            {"marker": "email", "value": email},
            {"marker": "password", "value": password},
        ],
    }


def submit_login(cache: ClientCache, email: str, password: str) -> Outcome:
    """Authenticate via the email provider and persist the session tokens.

    A response without a userIdentifier is a failed login: its message is
    returned as Rejected and no cookies are written. On success both tokens
    are stored (access 1 day, refresh 7 days) and the caller is told to
    redirect to "/".
    """
    try:
        client = cache.get()
        response = client.auth(AUTH_PROVIDER_MARKER, build_login_payload(email, password))

        user_identifier = response.get("userIdentifier") if isinstance(response, dict) else None
        if not user_identifier:
            message = response.get("message") if isinstance(response, dict) else None
            logger.info("Login rejected: no user identifier in provider response")
            return Rejected(message=str(message or "Invalid email or password."))

        store_session_tokens(response["accessToken"], response["refreshToken"])
    except CMSError as exc:
        if exc.status_code == 401:
            logger.info("Login rejected: %s", exc.message)
            return Rejected(message=exc.message)
        logger.exception("Login failed")
        raise ActionError(LOGIN_FAILED) from exc
    except Exception as exc:
        logger.exception("Login failed")
        raise ActionError(LOGIN_FAILED) from exc

    return Success(payload={"userIdentifier": user_identifier}, redirect_to="/")


# ---------------------------------------------------------------------------
# Session refresh
# ---------------------------------------------------------------------------


def refresh_session(cache: ClientCache) -> Outcome:
    """Exchange the session's refresh token for a new token pair.

    The rotated refresh token is persisted by the client's save callback;
    this function only writes the new access token.
    """
    refresh_token = retrieve_refresh_token()
    if not refresh_token:
        return Rejected(message="No active session.")

    try:
        client = cache.get()
        response = client.refresh(AUTH_PROVIDER_MARKER, refresh_token)
        access_token = response.get("accessToken") if isinstance(response, dict) else None
        if not access_token:
            raise ValueError("Refresh response has no accessToken")
        store_access_token(access_token)
    except CMSError as exc:
        if exc.status_code == 401:
            logger.info("Refresh rejected: %s", exc.message)
            return Rejected(message=exc.message)
        logger.exception("Session refresh failed")
        raise ActionError(REFRESH_FAILED) from exc
    except Exception as exc:
        logger.exception("Session refresh failed")
        raise ActionError(REFRESH_FAILED) from exc

    return Success()
