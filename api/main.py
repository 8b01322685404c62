"""
api/main.py -- FastAPI application entry point for the inventory service.

Exposes product CRUD, search and session auth over HTTP for the browser
client and scripts.

Install deps:  pip install -e .
Run with:      uvicorn api.main:app --reload
Admin tasks:   python main.py init-db | seed | create-user USERNAME --role ROLE

Middleware stack (outermost to innermost):
  1. log_requests          -- one access log line per request
  2. security_headers      -- X-Frame-Options, nosniff, Referrer-Policy, Permissions-Policy
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan handles startup (stores, purge task) and shutdown (cancel purge
task, dispose engines) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse, InfoResponse
from api.routes.auth import router as auth_router
from api.routes.products import router as products_router
from api.validation import field_errors
from auth.store import UserStore
from core.config import get_settings
from core.errors import InventoryError, ValidationError
from inventory.store import ProductStore

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("inventory.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------

_PURGE_INTERVAL_SECONDS = 60 * 60


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired session rows once an hour.

    Expired sessions are already rejected on lookup; this only keeps the
    sessions table from growing without bound. A failed purge is logged and
    retried on the next tick. CancelledError from task.cancel() during
    shutdown propagates out of asyncio.sleep and ends the loop.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        try:
            purged = await asyncio.to_thread(app.state.user_store.purge_expired_sessions)
        except SQLAlchemyError:
            logger.exception("Expired session purge failed")
            continue
        if purged:
            logger.info("Purged %d expired session(s)", purged)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the store handles for the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Route handlers reach the stores through request.app.state, never
    through a module-level connection.
    """
    # Startup
    logger.info("Inventory API %s starting up", settings.app_version)
    app.state.started_at = time.monotonic()
    app.state.user_store = UserStore()
    app.state.product_store = ProductStore()
    logger.info("Stores initialized (%s)", app.state.product_store.engine.url.render_as_string(hide_password=True))
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    # Shutdown
    app.state.purge_task.cancel()
    app.state.product_store.close()
    app.state.user_store.close()
    logger.info("Inventory API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Inventory API",
    description="Product inventory with role-based access: admins manage stock, viewers read it.",
    version=settings.app_version,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette prepends each add_middleware() call, so the last registered runs
# outermost. The @app.middleware("http") functions below are registered after
# these and therefore wrap them: even a TrustedHost rejection is logged and
# carries the security headers.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------

_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered last so it is the outermost layer and its latency figure covers
# the whole stack.
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(products_router, prefix="/api", tags=["Products"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, body: dict, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(**body).model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    """Render any InventoryError subclass with its own status and category."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with every failing field when FastAPI rejects the request.

    Covers bodies that are not JSON, not an object, or fail the request model.
    """
    error = ValidationError("Invalid request body.", field_errors(exc.errors(), request_scoped=True))
    return _error_response(error.status_code, error.to_dict())


_HTTP_CATEGORIES = {
    404: ("not_found", "The requested resource was not found."),
    405: ("method_not_allowed", "Method not allowed for this resource."),
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) in the error envelope.

    Registered on Starlette's HTTPException so router-level 404/405 responses
    are caught too, not only FastAPI's subclass. Headers such as Allow are kept.
    """
    category, message = _HTTP_CATEGORIES.get(exc.status_code, (f"http_{exc.status_code}", str(exc.detail)))
    return _error_response(exc.status_code, {"error": category, "message": message}, headers=exc.headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    client = request.client.host if request.client else "unknown"
    logger.warning("Rate limit exceeded on %s from %s", request.url.path, client)
    return _error_response(
        429,
        {"error": "rate_limited", "message": "Too many requests. Try again later."},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Datastore failures become a generic 500. Details go to the log only."""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _error_response(500, {"error": "internal_error", "message": "An internal error occurred."})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, {"error": "internal_error", "message": "An unexpected error occurred."})


# ---------------------------------------------------------------------------
# Health and info endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No auth and no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"], response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    """Return liveness, version, uptime and a database round-trip check."""
    components = {"app": "ok"}
    try:
        request.app.state.product_store.ping()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        status="healthy" if components["database"] == "ok" else "degraded",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(time.monotonic() - started_at, 3),
        components=components,
    )


_ENDPOINTS = {
    "POST /api/auth/login": "Start a session with username and password",
    "POST /api/auth/logout": "End the current session",
    "GET /api/auth/me": "Current user",
    "GET /api/auth/status": "Whether the request is authenticated",
    "GET /api/products": "List products with inventory totals",
    "GET /api/products/{id}": "Get one product",
    "POST /api/products": "Create a product (admin)",
    "PUT /api/products/{id}": "Update some fields of a product (admin)",
    "DELETE /api/products/{id}": "Delete a product (admin)",
    "GET /api/products/search/{query}": "Search products by name or SKU",
    "GET /api/health": "Liveness and database check",
}


@app.get("/api/info", tags=["Health"], response_model=InfoResponse)
async def info() -> InfoResponse:
    """Return the service name, version and endpoint map."""
    return InfoResponse(
        name=app.title,
        description=app.description,
        version=settings.app_version,
        endpoints=_ENDPOINTS,
    )
