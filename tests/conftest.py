"""
tests/conftest.py -- Shared test fixtures for the storefront auth tests.

This module provides:
  - cms: a MagicMock standing in for core.cms.CMSClient, preloaded with the
    sign-up and sign-in form templates
  - client_cache: a real ClientCache whose factory returns the mock
  - bound_jar: a CookieJar bound to the current context, for unit tests that
    call the token store outside a request
  - client: TestClient over the assembled ASGI app (API + web) with the
    lifespan patched to use client_cache; follow_redirects=False so tests
    can assert on Location headers

Environment must be set before any app import: get_settings() is cached on
first call and api/main.py reads it at import time.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: set before importing anything that calls get_settings().
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ONEENTRY_PROJECT_URL", "https://cms.example.test")
os.environ.setdefault("ONEENTRY_TOKEN", "test-app-token")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.client import ClientCache
from auth.cookies import CookieJar, bind_cookie_jar, reset_cookie_jar

SIGNUP_FORM = {
    "identifier": "sign_up",
    "attributes": [
        {
            "marker": "name",
            "type": "string",
            "position": 3,
            "localizeInfos": {"title": "Name"},
            "validators": {"requiredValidator": {"strict": True}},
        },
        {"marker": "email", "type": "string", "position": 1, "localizeInfos": {"title": "Email"}},
        {"marker": "password", "type": "string", "position": 2, "localizeInfos": {"title": "Password"}},
    ],
}

LOGIN_FORM = {
    "identifier": "sign_in",
    "attributes": [
        {"marker": "email", "type": "string", "position": 1, "localizeInfos": {"title": "Email"}},
        {"marker": "password", "type": "string", "position": 2, "localizeInfos": {"title": "Password"}},
    ],
}

_FORMS = {"sign_up": SIGNUP_FORM, "sign_in": LOGIN_FORM}


def _form_by_marker(marker: str, lang_code: str | None = None) -> dict:
    return _FORMS[marker]


@pytest.fixture
def cms() -> MagicMock:
    """A CMSClient stand-in. Tests override auth/sign_up/refresh per case."""
    fake = MagicMock(name="CMSClient")
    fake.lang_code = "en_US"
    fake.get_form_by_marker.side_effect = _form_by_marker
    return fake


@pytest.fixture
def client_cache(cms: MagicMock) -> ClientCache:
    return ClientCache(factory=lambda *args, **kwargs: cms)


@pytest.fixture
def bound_jar() -> Generator[CookieJar, None, None]:
    jar = CookieJar()
    token = bind_cookie_jar(jar)
    yield jar
    reset_cookie_jar(token)


def _patch_lifespan(cache: ClientCache):
    """Return a lifespan that installs the test cache instead of a real one."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.client_cache = cache
        yield

    return test_lifespan


@pytest.fixture
def client(client_cache: ClientCache) -> Generator[TestClient, None, None]:
    app.router.lifespan_context = _patch_lifespan(client_cache)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client
