"""
api/main.py -- FastAPI application entry point for the auth service.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- CORS headers, including the signing and session headers
  2. log_requests   -- one log line per request with status and latency

Lifespan builds the store, token issuer and session manager from Settings and
puts them on app.state. The gate dependencies and route handlers read them
from there; nothing else holds a reference.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.responses import failure, success
from api.routes.applications import router as applications_router
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.errors import AuthServiceError, InvalidRequest
from auth.sessions import SessionManager
from auth.store import AuthStore
from auth.tokens import TokenIssuer
from core.config import get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tenantauth.api")

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Construct the service's collaborators on startup and release them on shutdown.

    Order matters: the session manager wraps the store, so the store is built first.
    """
    settings = get_settings()
    logger.info("Auth service starting up")
    app.state.store = AuthStore(db_url=settings.database_url)
    app.state.token_issuer = TokenIssuer(settings.secret_key, settings.token_expire_seconds)
    app.state.sessions = SessionManager(app.state.store, settings.session_expire_seconds)
    logger.info("Store initialized")

    yield

    app.state.store.close()
    logger.info("Auth service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tenant Auth API",
    description="Developer accounts, application key pairs and per-application end-user sessions.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Accept",
        "Authorization",
        "Content-Type",
        "X-Public-Key",
        "X-Timestamp",
        "X-Signature",
        "X-Session-Token",
    ],
    max_age=300,
)


# ---------------------------------------------------------------------------
# Request logging middleware
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

app.include_router(auth_router, prefix="/api", tags=["Developer Auth"])
app.include_router(applications_router, prefix="/api", tags=["Applications"])
app.include_router(users_router, prefix="/api", tags=["End Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success: false, error} envelope so clients can
# parse failures uniformly. Messages are fixed strings; exception text and
# stack traces go to the log only.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return failure(exc.message, exc.status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or a body that fails model validation -> 400 Invalid request format."""
    return failure(InvalidRequest.message, InvalidRequest.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing-level errors (404 unknown path, 405 wrong method) in the same envelope."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return failure(message, exc.status_code)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The client gets a generic message only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return failure("An unexpected error occurred.", 500)


# ---------------------------------------------------------------------------
# Health and root
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> dict:
    return {"success": True, "data": {"message": "Tenant Auth API"}}


@app.get("/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Liveness plus a trivial database round trip. No authentication."""
    if request.app.state.store.ping():
        return success(HealthResponse())
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": "Database unavailable.", "data": HealthResponse(database="error").model_dump()},
    )
