"""
api/main.py -- FastAPI application entry point for the storefront auth service.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests       -- method, path, status, latency per request
  2. cookie_jar_scope   -- binds the request CookieJar, applies pending
                           cookie writes to the response
  3. CORSMiddleware     -- adds CORS headers for allowed browser origins
  4. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Lifespan owns the ClientCache: created on startup, CMS client closed on
shutdown. The client itself is built lazily on the first request that needs
it, because construction reads that request's refresh token cookie.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.actions import ActionError
from auth.client import ClientCache
from auth.cookies import CookieJar, bind_cookie_jar, reset_cookie_jar
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("storefront.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the ClientCache on startup; close its client on shutdown."""
    logger.info("Storefront auth starting up")
    app.state.client_cache = ClientCache()
    if not get_settings().cms_configured:
        logger.warning("CMS not configured -- auth routes will fail until ONEENTRY_PROJECT_URL is set")

    yield

    app.state.client_cache.close()
    logger.info("Storefront auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Storefront Auth",
    description="Sign-up and sign-in for the storefront, backed by the headless CMS.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the app, so the LAST registered class is outermost.
# @app.middleware("http") functions are added the same way, after the classes
# below, which puts them outside CORS and SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "HX-Request", "HX-Target", "HX-Current-URL"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def cookie_jar_scope(request: Request, call_next):
    """Expose the request's cookies to auth.cookies and persist writes.

    The jar is bound in a ContextVar before the route runs, so the CMS
    client's save callback can store a rotated refresh token without a
    reference to the request. Pending writes are copied onto whatever
    response the route produced.
    """
    jar = CookieJar(request.cookies)
    token = bind_cookie_jar(jar)
    try:
        response = await call_next(request)
    finally:
        reset_cookie_jar(token)
    jar.apply(response, secure=get_settings().secure_cookies)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(ActionError)
async def action_error_handler(request: Request, exc: ActionError) -> JSONResponse:
    """Return 502 with the action's generic message.

    The cause was already logged by the action. Only str(exc) -- a fixed,
    user-safe message -- reaches the client.
    """
    return JSONResponse(
        status_code=502,
        content=ErrorResponse(
            error=ErrorDetail(code="upstream_error", message=str(exc)),
        ).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable. No rate limit --
# health checks must not be throttled. Never touches the network: "cms"
# reports whether the client is configured and built, not whether the CMS
# is reachable.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, version, and CMS client state."""
    cache = getattr(request.app.state, "client_cache", None)
    if not get_settings().cms_configured:
        cms = "not_configured"
    elif cache is not None and cache.initialized:
        cms = "ready"
    else:
        cms = "idle"
    return HealthResponse(version=__version__, components={"app": "ok", "cms": cms})
