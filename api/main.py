"""
api/main.py -- FastAPI application entry point for the auth service.

Run with:      python main.py
               uvicorn api.main:app --reload

Lifespan builds every long-lived dependency exactly once and hands it to
AuthService explicitly -- there is no ambient global lookup from inside the
auth/ package:

    Settings -> SqlUserStore, BcryptHasher, JWTTokenIssuer -> AuthService

and tears them down symmetrically on shutdown.

Error mapping: every AuthError kind has a fixed HTTP status (_STATUS_BY_CODE)
and is rendered in the same ErrorResponse envelope as validation and
unexpected errors, so clients parse one schema.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, InvalidCredentialsError
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import SqlUserStore
from auth.tokens import JWTTokenIssuer
from core.config import get_settings
from core.telemetry import configure_telemetry, record_response_time, shutdown_telemetry

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authservice.api")

# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build dependencies on startup, release them on shutdown.

    Telemetry first so the first request's spans have a provider to land in.
    """
    settings = get_settings()
    logger.info("Auth service starting up (env=%s)", settings.app_env)
    app.state.telemetry = configure_telemetry(settings)

    app.state.user_store = SqlUserStore(settings.resolved_database_url())
    logger.info("User store initialized")
    app.state.auth_service = AuthService(
        store=app.state.user_store,
        hasher=BcryptHasher(),
        tokens=JWTTokenIssuer(settings.jwt_secret),
    )

    yield

    app.state.user_store.close()
    shutdown_telemetry(app.state.telemetry)
    logger.info("Auth service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Auth Service API",
    description="Account registration and credential login with access / refresh tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Latency is logged and recorded in the response-time histogram.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    record_response_time(request.url.path, ms, response.status_code)
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


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

_STATUS_BY_CODE = {
    "duplicate_account": 409,
    "hashing_error": 400,
    "persistence_error": 500,
    "invalid_credentials": 401,
    "token_issuance_error": 500,
}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate a typed AuthError into its HTTP status and error envelope.

    InvalidCredentialsError always renders its generic public message; the
    internal reason stays in logs and traces. Server-side kinds (5xx) also
    render the public message so store or signing internals never leak.
    """
    status_code = _STATUS_BY_CODE.get(exc.code, 400)
    if isinstance(exc, InvalidCredentialsError) or status_code >= 500:
        message = exc.public_message
    else:
        message = exc.message
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
    )
    if isinstance(exc, InvalidCredentialsError):
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation.

    Input values are not echoed back: a failing body may contain a password.
    """
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=fields or None,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
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
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and backing-store reachability."""
    store = request.app.state.user_store
    database = "ok" if store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
