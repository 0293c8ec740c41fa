"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> ClientCache
dependency -> auth actions -> cookie jar middleware -> response envelope.
The CMS is the conftest MagicMock; no network calls are made.

Coverage:
  - Form schema endpoints return ordered fields; provider failure -> 502 generic
  - Sign-up: 201 passthrough, 400 rejection, 502 on unexpected failure
  - Login: 200 with cookies, 401 rejection without cookies
  - Refresh: 401 without a session, rotation through the save callback
  - Logout clears cookies; body validation -> 422 envelope
  - Login and sign-up are rate limited (429 envelope past LOGIN_RATE_LIMIT)
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from auth.cookies import store_refresh_token
from core.cms import CMSError
from core.config import get_settings

_SIGNUP_BODY = {"email": "a@example.com", "password": "pw", "name": "Ada"}
_LOGIN_BODY = {"email": "a@example.com", "password": "pw"}


def _set_cookies(resp) -> list[str]:
    return [v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie"]


class TestFormRoutes:
    def test_signup_form(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/signup/form")
        assert resp.status_code == 200
        data = resp.json()
        assert [f["marker"] for f in data] == ["email", "password", "name"]
        assert data[2] == {"marker": "name", "title": "Name", "type": "string", "position": 3, "required": True}

    def test_login_form(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/login/form")
        assert resp.status_code == 200
        assert [f["marker"] for f in resp.json()] == ["email", "password"]

    def test_fetch_failure_is_generic_502(self, client: TestClient, cms: MagicMock) -> None:
        cms.get_form_by_marker.side_effect = CMSError(None, "connection refused to 10.0.0.5")
        resp = client.get("/api/v1/auth/login/form")
        assert resp.status_code == 502
        error = resp.json()["error"]
        assert error["code"] == "upstream_error"
        assert error["message"] == "Fetching form data failed."
        assert "10.0.0.5" not in resp.text


class TestSignupRoute:
    def test_created_passthrough(self, client: TestClient, cms: MagicMock) -> None:
        cms.sign_up.return_value = {"id": 3, "identifier": "a@example.com", "isActive": False}
        resp = client.post("/api/v1/auth/signup", json=_SIGNUP_BODY)
        assert resp.status_code == 201
        assert resp.json() == {"id": 3, "identifier": "a@example.com", "isActive": False}

    def test_duplicate_rejected(self, client: TestClient, cms: MagicMock) -> None:
        cms.sign_up.side_effect = CMSError(400, "User already exists")
        resp = client.post("/api/v1/auth/signup", json=_SIGNUP_BODY)
        assert resp.status_code == 400
        assert resp.json() == {"error": {"code": "rejected", "message": "User already exists", "detail": None}}

    def test_unexpected_failure(self, client: TestClient, cms: MagicMock) -> None:
        cms.sign_up.side_effect = CMSError(503, "maintenance window")
        resp = client.post("/api/v1/auth/signup", json=_SIGNUP_BODY)
        assert resp.status_code == 502
        assert resp.json()["error"]["message"] == "Account Creation Failed. Please try again later."

    def test_missing_name_is_validation_error(self, client: TestClient, cms: MagicMock) -> None:
        resp = client.post("/api/v1/auth/signup", json=_LOGIN_BODY)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"
        cms.sign_up.assert_not_called()


class TestLoginRoute:
    def test_success_sets_cookies(self, client: TestClient, cms: MagicMock) -> None:
        cms.auth.return_value = {"userIdentifier": "a@example.com", "accessToken": "acc", "refreshToken": "ref"}
        resp = client.post("/api/v1/auth/login", json=_LOGIN_BODY)
        assert resp.status_code == 200
        assert resp.json() == {"user_identifier": "a@example.com", "redirect_to": "/"}
        assert resp.headers["Cache-Control"] == "no-store"
        cookies = _set_cookies(resp)
        assert any(h.startswith("access_token=acc") and "Max-Age=86400" in h for h in cookies)
        assert any(h.startswith("refresh_token=ref") and "Max-Age=604800" in h for h in cookies)
        assert "acc" not in resp.text

    def test_no_identifier_rejected(self, client: TestClient, cms: MagicMock) -> None:
        cms.auth.return_value = {"statusCode": 401, "message": "Invalid credentials"}
        resp = client.post("/api/v1/auth/login", json=_LOGIN_BODY)
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Invalid credentials"
        assert _set_cookies(resp) == []

    def test_unauthorized_rejected(self, client: TestClient, cms: MagicMock) -> None:
        cms.auth.side_effect = CMSError(401, "Wrong password")
        resp = client.post("/api/v1/auth/login", json=_LOGIN_BODY)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "rejected"


class TestSessionRoutes:
    def test_refresh_without_session(self, client: TestClient, cms: MagicMock) -> None:
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "No active session."
        cms.refresh.assert_not_called()

    def test_refresh_rotates_tokens(self, client: TestClient, cms: MagicMock) -> None:
        def fake_refresh(provider: str, token: str) -> dict:
            # What CMSClient does on rotation: hand the new token to its save callback.
            store_refresh_token("ref-2")
            return {"accessToken": "acc-2", "refreshToken": "ref-2"}

        cms.refresh.side_effect = fake_refresh
        client.cookies.set("refresh_token", "ref-1")

        resp = client.post("/api/v1/auth/refresh")

        assert resp.status_code == 200
        cms.refresh.assert_called_once_with("email", "ref-1")
        cookies = _set_cookies(resp)
        assert any(h.startswith("access_token=acc-2") for h in cookies)
        assert any(h.startswith("refresh_token=ref-2") and "Max-Age" not in h for h in cookies)

    def test_logout_clears_cookies(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logged out."}
        cookies = _set_cookies(resp)
        assert any(h.startswith("access_token=") and "Max-Age=0" in h for h in cookies)
        assert any(h.startswith("refresh_token=") and "Max-Age=0" in h for h in cookies)


@pytest.fixture
def strict_credential_limit(monkeypatch):
    """Drop LOGIN_RATE_LIMIT to 2/minute with fresh counters."""
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "2/minute")
    get_settings.cache_clear()
    limiter.reset()
    yield
    monkeypatch.undo()
    get_settings.cache_clear()
    limiter.reset()


class TestRateLimit:
    def test_login_is_limited(self, client: TestClient, cms: MagicMock, strict_credential_limit) -> None:
        cms.auth.side_effect = CMSError(401, "Wrong password")

        codes = [client.post("/api/v1/auth/login", json=_LOGIN_BODY).status_code for _ in range(3)]

        assert codes == [401, 401, 429]

    def test_limited_response_uses_error_envelope(
        self, client: TestClient, cms: MagicMock, strict_credential_limit
    ) -> None:
        cms.sign_up.side_effect = CMSError(400, "User already exists")
        for _ in range(2):
            client.post("/api/v1/auth/signup", json=_SIGNUP_BODY)

        resp = client.post("/api/v1/auth/signup", json=_SIGNUP_BODY)

        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "rate_limited"
        assert "Retry-After" in resp.headers
        assert cms.sign_up.call_count == 2
