"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  GET  /api/v1/auth/signup/form   -- sign-up form fields from the CMS
  GET  /api/v1/auth/login/form    -- sign-in form fields from the CMS
  POST /api/v1/auth/signup        -- register; 201 with provider response
  POST /api/v1/auth/login         -- authenticate; sets session cookies
  POST /api/v1/auth/refresh       -- rotate session tokens
  POST /api/v1/auth/logout        -- clear session cookies

Rejections (bad credentials, duplicate account) come back as
{"error": {"code": "rejected", "message": ...}} with 400/401. ActionError
propagates to the handler in api/main.py, which answers 502 with the
generic message only.

Session cookies are written through auth.cookies; the cookie_jar_scope
middleware in api/main.py copies them onto the response.

Security:
  Login and sign-up are rate-limited (LOGIN_RATE_LIMIT, default 10/minute per IP).
  Cache-Control: no-store on login and refresh responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_limit, limiter
from api.models import (
    ErrorDetail,
    ErrorResponse,
    FormFieldResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SignupRequest,
)
from auth.actions import (
    fetch_login_schema,
    fetch_signup_schema,
    refresh_session,
    submit_login,
    submit_signup,
)
from auth.client import ClientCache
from auth.cookies import clear_session_tokens
from auth.dependencies import get_client_cache
from auth.models import Rejected

# Auth policy: every route here is public. The CMS owns identity; this app
# only relays credentials and stores the tokens it hands back.
router = APIRouter()


def _rejected(status_code: int, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code="rejected", message=message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Form schemas
# ---------------------------------------------------------------------------


@router.get("/auth/signup/form", response_model=list[FormFieldResponse])
def signup_form(cache: ClientCache = Depends(get_client_cache)) -> list[FormFieldResponse]:
    """Return the CMS-defined sign-up fields in display order."""
    return [FormFieldResponse.from_field(f) for f in fetch_signup_schema(cache)]


@router.get("/auth/login/form", response_model=list[FormFieldResponse])
def login_form(cache: ClientCache = Depends(get_client_cache)) -> list[FormFieldResponse]:
    """Return the CMS-defined sign-in fields in display order."""
    return [FormFieldResponse.from_field(f) for f in fetch_login_schema(cache)]


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@router.post("/auth/signup", status_code=201)
@limiter.limit(credential_limit)
def signup(
    request: Request,
    body: SignupRequest,
    cache: ClientCache = Depends(get_client_cache),
) -> JSONResponse:
    """Register a new account. The provider response is returned unchanged."""
    outcome = submit_signup(cache, body.email.strip(), body.password, body.name.strip())
    if isinstance(outcome, Rejected):
        return _rejected(400, outcome.message)
    return JSONResponse(status_code=201, content=outcome.payload)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(credential_limit)
def login(
    request: Request,
    body: LoginRequest,
    cache: ClientCache = Depends(get_client_cache),
) -> JSONResponse:
    """Authenticate with email and password; set access/refresh cookies.

    The tokens themselves are never echoed in the body -- they travel only
    as httpOnly cookies.
    """
    outcome = submit_login(cache, body.email.strip(), body.password)
    if isinstance(outcome, Rejected):
        return _rejected(401, outcome.message)
    resp = JSONResponse(
        content=LoginResponse(
            user_identifier=str(outcome.payload["userIdentifier"]),
            redirect_to=outcome.redirect_to or "/",
        ).model_dump()
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/refresh", response_model=MessageResponse)
def refresh(cache: ClientCache = Depends(get_client_cache)) -> JSONResponse:
    """Rotate the session tokens using the refresh_token cookie."""
    outcome = refresh_session(cache)
    if isinstance(outcome, Rejected):
        return _rejected(401, outcome.message)
    resp = JSONResponse(content=MessageResponse(message="Session refreshed.").model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Clear the session cookies."""
    clear_session_tokens()
    return MessageResponse(message="Logged out.")
