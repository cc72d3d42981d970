"""
api/main.py -- FastAPI application entry point for the Assets API.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost; Starlette wraps the last-added
middleware outermost):
  1. log_requests          -- one access-log line per request, rejections included
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan builds the stores, the token issuer and the auth service on startup
and closes the stores on shutdown. Route handlers reach them through
request.app.state; nothing else holds a module-level singleton.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.assets import router as assets_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.departments import router as departments_router
from api.routes.v1.users import router as users_router
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer
from core.config import get_settings
from core.errors import AppError
from inventory.store import InventoryStore

API_VERSION = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("assetapi.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create application-level resources on startup, release them on shutdown.

    Startup order matters: the credential store resolves department scope
    through the inventory store, so inventory comes first.
    """
    logger.info("Assets API starting up")
    app.state.inventory = InventoryStore(settings.database_url)
    app.state.user_store = UserStore(settings.database_url, departments=app.state.inventory)
    app.state.token_issuer = TokenIssuer(TokenConfig.from_settings(settings))
    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.token_issuer,
        totp_issuer=settings.totp_issuer,
    )
    if not app.state.user_store.has_users():
        logger.warning("No users exist yet -- create one with: python main.py create-admin")
    logger.info("Stores initialized (%s)", settings.database_url.split("://", 1)[0])

    yield

    app.state.user_store.close()
    app.state.inventory.close()
    logger.info("Assets API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Assets API",
    description="Fixed-asset inventory with JWT authentication and TOTP two-factor login.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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
        _client_ip(request),
    )
    return response


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(departments_router, prefix="/api/v1", tags=["Departments"])
app.include_router(assets_router, prefix="/api/v1", tags=["Assets"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render any AppError raised by a route, dependency, service or store."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s -> %d %s (%s)",
            request.method,
            request.url.path,
            exc.status_code,
            exc.code,
            _client_ip(request),
            exc_info=exc,
        )
        return _error_response(exc.status_code, exc.code, "An unexpected error occurred.")
    logger.warning(
        "%s %s -> %d %s (%s)", request.method, request.url.path, exc.status_code, exc.code, _client_ip(request)
    )
    return _error_response(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the body or query params fail validation."""
    logger.warning(
        "%s %s -> 400 validation_error (%s)", request.method, request.url.path, _client_ip(request)
    )
    return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured errors for framework-raised HTTP errors (unknown route, wrong method)."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.error(
        "Unhandled exception on %s %s (%s)", request.method, request.url.path, _client_ip(request), exc_info=exc
    )
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
