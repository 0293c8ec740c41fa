"""
web/view.py -- State and rules for the sign-up / sign-in page.

The page has two modes selected by ?type= (login -> sign-in, anything else ->
sign-up). AuthView carries everything a render needs: mode, fetched fields,
the values being re-displayed, and at most one error and one notice.

Kept free of FastAPI and Jinja2 so the rules can be unit tested directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.models import FormField

MISSING_FIELDS_MESSAGE = "Please fill in all required fields."
SIGNUP_COMPLETE_NOTICE = "Account created successfully. Please sign in."


class AuthMode(str, Enum):
    SIGN_UP = "signup"
    SIGN_IN = "login"

    @classmethod
    def from_query(cls, value: Optional[str]) -> AuthMode:
        return cls.SIGN_IN if value == "login" else cls.SIGN_UP

    @property
    def required_fields(self) -> tuple[str, ...]:
        if self is AuthMode.SIGN_UP:
            return ("email", "password", "name")
        return ("email", "password")

    @property
    def heading(self) -> str:
        return "Sign Up" if self is AuthMode.SIGN_UP else "Sign In"

    @property
    def other(self) -> AuthMode:
        return AuthMode.SIGN_IN if self is AuthMode.SIGN_UP else AuthMode.SIGN_UP

    @property
    def url(self) -> str:
        return "/auth?type=login" if self is AuthMode.SIGN_IN else "/auth?type=signup"


@dataclass
class AuthView:
    mode: AuthMode = AuthMode.SIGN_UP
    fields: list[FormField] = field(default_factory=list)
    values: dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    notice: Optional[str] = None

    def missing_fields(self) -> list[str]:
        """Required markers for this mode that are absent or blank."""
        return [name for name in self.mode.required_fields if not (self.values.get(name) or "").strip()]

    def switch_mode(self, mode: AuthMode, notice: Optional[str] = None) -> AuthView:
        """Return a fresh view in another mode. Inputs and fields are cleared."""
        return AuthView(mode=mode, notice=notice)

    def redisplay_values(self) -> dict[str, str]:
        """Values safe to echo back into the form. Passwords are never re-rendered."""
        return {k: v for k, v in self.values.items() if "password" not in k}


def collect_values(form: Mapping[str, Any]) -> dict[str, str]:
    """Keep the string-valued entries of a submitted form."""
    return {k: v for k, v in form.items() if isinstance(v, str)}


def signup_succeeded(payload: Mapping[str, Any]) -> bool:
    """A sign-up response counts as success only when it names the new user."""
    return bool(payload.get("identifier"))


def input_type(form_field: FormField) -> str:
    """HTML input type for a CMS field."""
    hint = form_field.type.lower()
    marker = form_field.marker.lower()
    if hint == "password" or "password" in marker:
        return "password"
    if hint == "email" or marker == "email":
        return "email"
    return "text"
