"""
API request and response models for the storefront auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py and
auth/models.py, which own the internal representation. Route handlers map
between the two.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import FormField

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    # Never stripped: whitespace is significant in passwords.
    password: str = Field(min_length=1, max_length=255)


class SignupRequest(LoginRequest):
    name: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class FormFieldResponse(BaseModel):
    """One input of a CMS-driven form."""

    model_config = ConfigDict(frozen=True)

    marker: str
    title: str
    type: str
    position: int
    required: bool

    @classmethod
    def from_field(cls, field: FormField) -> "FormFieldResponse":
        return cls(
            marker=field.marker,
            title=field.title,
            type=field.type,
            position=field.position,
            required=field.required,
        )


class LoginResponse(BaseModel):
    user_identifier: str
    redirect_to: str = "/"


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
