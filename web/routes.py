"""
web/routes.py -- Jinja2 template routes for the storefront auth screens.

These routes serve server-rendered HTML. They share app.state (the
ClientCache) with the API routes but return HTML instead of JSON.

HTMX: the auth panel is swapped in place on mode toggles and form
submissions. When HX-Request is present only partials/auth_panel.html is
rendered; a successful sign-in answers with HX-Redirect so the browser
navigates client-side. Without HTMX the same routes render full pages and
answer 303 redirects.

Routes:
  GET  /         -- landing page
  GET  /auth     -- sign-up (default) or sign-in (?type=login) form
  POST /auth     -- submit the form for the mode in ?type=
  POST /logout   -- clear session cookies, redirect to sign-in
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from auth.actions import ActionError, fetch_login_schema, fetch_signup_schema, submit_login, submit_signup
from auth.client import ClientCache
from auth.cookies import clear_session_tokens
from auth.dependencies import get_client_cache, is_signed_in
from auth.models import Rejected
from core.config import get_settings
from web.view import (
    MISSING_FIELDS_MESSAGE,
    SIGNUP_COMPLETE_NOTICE,
    AuthMode,
    AuthView,
    collect_values,
    input_type,
    signup_succeeded,
)

logger = logging.getLogger("storefront.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals["input_type"] = input_type
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_htmx(request: Request) -> bool:
    return request.headers.get("HX-Request") == "true"


def _load_fields(view: AuthView, cache: ClientCache) -> AuthView:
    """Fetch the schema for the view's mode. A failure becomes the page error."""
    fetch = fetch_login_schema if view.mode is AuthMode.SIGN_IN else fetch_signup_schema
    try:
        view.fields = fetch(cache)
    except ActionError as exc:
        view.fields = []
        view.error = view.error or str(exc)
    return view


def _render(request: Request, view: AuthView, status_code: int = 200) -> HTMLResponse:
    template = "auth.html"
    if _is_htmx(request):
        # HTMX only swaps 2xx responses; the error is carried in the fragment.
        template, status_code = "partials/auth_panel.html", 200
    return templates.TemplateResponse(
        request,
        template,
        {
            "view": view,
            "values": view.redisplay_values(),
            "store_name": get_settings().store_name,
        },
        status_code=status_code,
    )


# ---------------------------------------------------------------------------
# GET / -- landing page
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "home.html",
        {"signed_in": is_signed_in(request), "store_name": get_settings().store_name},
    )


# ---------------------------------------------------------------------------
# GET /auth -- render the form for the requested mode
# ---------------------------------------------------------------------------


@router.get("/auth", response_class=HTMLResponse)
def auth_page(
    request: Request,
    type: Optional[str] = None,
    cache: ClientCache = Depends(get_client_cache),
) -> HTMLResponse:
    """Render sign-up or sign-in with fields fetched fresh from the CMS."""
    view = _load_fields(AuthView(mode=AuthMode.from_query(type)), cache)
    return _render(request, view)


# ---------------------------------------------------------------------------
# POST /auth -- submit sign-up or sign-in
# ---------------------------------------------------------------------------


@router.post("/auth", response_class=HTMLResponse)
async def auth_submit(
    request: Request,
    type: Optional[str] = None,
    cache: ClientCache = Depends(get_client_cache),
) -> Response:
    """Validate presence, call the matching action, render the outcome.

    Missing required fields short-circuit before the CMS is called.
    Rejections render inline with the submitted values (minus passwords).
    """
    mode = AuthMode.from_query(type)
    form = await request.form()
    view = AuthView(mode=mode, values=collect_values(form))

    if view.missing_fields():
        view.error = MISSING_FIELDS_MESSAGE
        await run_in_threadpool(_load_fields, view, cache)
        return _render(request, view, status_code=400)

    email = view.values["email"].strip()
    password = view.values["password"]
    try:
        if mode is AuthMode.SIGN_UP:
            outcome = await run_in_threadpool(submit_signup, cache, email, password, view.values["name"].strip())
        else:
            outcome = await run_in_threadpool(submit_login, cache, email, password)
    except ActionError as exc:
        view.error = str(exc)
        await run_in_threadpool(_load_fields, view, cache)
        return _render(request, view, status_code=502)

    if isinstance(outcome, Rejected):
        view.error = outcome.message
        await run_in_threadpool(_load_fields, view, cache)
        return _render(request, view, status_code=400)

    if mode is AuthMode.SIGN_UP:
        if not signup_succeeded(outcome.payload):
            view.error = str(outcome.payload.get("message") or "Account creation failed.")
            await run_in_threadpool(_load_fields, view, cache)
            return _render(request, view, status_code=400)
        logger.info("Sign-up completed; switching to sign-in")
        next_view = view.switch_mode(AuthMode.SIGN_IN, notice=SIGNUP_COMPLETE_NOTICE)
        await run_in_threadpool(_load_fields, next_view, cache)
        response = _render(request, next_view)
        if _is_htmx(request):
            response.headers["HX-Push-Url"] = AuthMode.SIGN_IN.url
        return response

    # Sign-in succeeded; cookies are already in the request jar.
    target = outcome.redirect_to or "/"
    if _is_htmx(request):
        return Response(status_code=200, headers={"HX-Redirect": target, "Cache-Control": "no-store"})
    resp = RedirectResponse(target, status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# POST /logout
# ---------------------------------------------------------------------------


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the session cookies and redirect to the sign-in page."""
    clear_session_tokens()
    return RedirectResponse(AuthMode.SIGN_IN.url, status_code=303)
