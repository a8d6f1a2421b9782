"""
api/main.py -- FastAPI application entry point for the login service.

Run with:  uvicorn api.main:app --reload

Lifespan loads Settings once, builds the stores and protocols from them, and
publishes them on app.state. Route handlers read app.state; nothing reads
configuration during a request.

Middleware: a single request-logging interceptor. Rate limiting is not part
of this service.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from accounts.store import AccountStore
from analytics.store import AnalyticsStore
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.login import router as login_router
from auth.migration import MigrationProtocol
from auth.protocol import AuthProtocol
from auth.sessions import SessionRegistry
from core.config import Settings, get_settings
from core.errors import DecodeError, InvalidRequestError, StorageError
from core.status import StatusCode

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("runauth.api")


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_services(app: FastAPI, settings: Settings) -> None:
    """Construct stores and protocols from settings and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph.
    """
    app.state.settings = settings
    app.state.accounts = AccountStore(settings.database_url, timeout=settings.storage_timeout_seconds)
    app.state.sessions = SessionRegistry(
        settings.database_url,
        token_bytes=settings.session_token_bytes,
        ttl_seconds=settings.session_ttl_seconds,
        timeout=settings.storage_timeout_seconds,
    )
    app.state.analytics = AnalyticsStore(settings.analytics_db_path)
    app.state.auth = AuthProtocol(
        app.state.accounts,
        app.state.sessions,
        app.state.analytics,
        enforce_password=settings.enforce_login_password,
        default_username=settings.default_username,
    )
    app.state.migration = MigrationProtocol(app.state.accounts, app.state.sessions)


def close_services(app: FastAPI) -> None:
    app.state.accounts.close()
    app.state.sessions.close()
    app.state.analytics.close()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build services on startup, dispose of them on shutdown."""
    logger.info("Login service starting up")
    settings = get_settings()
    build_services(app, settings)
    logger.info(
        "Stores initialized (players=%d, password_check=%s, session_ttl=%ds)",
        app.state.accounts.count_players(),
        settings.enforce_login_password,
        settings.session_ttl_seconds,
    )

    yield

    close_services(app)
    logger.info("Login service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RunAuth",
    description="Account registration, login and device migration for the game server.",
    version=VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor. Every request passes through this coroutine before
# reaching any route handler; latency is measured around call_next.
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

app.include_router(login_router, prefix="/api/v1", tags=["Login"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    game_status = StatusCode.REQUEST_PARAM_ERROR if status_code < 500 else StatusCode.SERVER_SYSTEM_ERROR
    body = ErrorResponse(status_code=game_status, error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@app.exception_handler(DecodeError)
async def decode_error_handler(request: Request, exc: DecodeError) -> JSONResponse:
    """400 for bodies that are not JSON of the expected shape. Nothing was written."""
    logger.warning("Undecodable request on %s: %s", request.url.path, exc)
    return _error(400, "decode_error", "Request body could not be decoded.", str(exc))


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
    """400 for well-formed requests whose field combination is meaningless."""
    logger.info("Invalid request on %s: %s", request.url.path, exc)
    return _error(400, "invalid_request", "Invalid request.")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    """500 for persistence failures. The cause is logged, never returned."""
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus a database round-trip check."""
    database = "ok" if request.app.state.accounts.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
