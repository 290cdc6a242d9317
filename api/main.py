"""
api/main.py -- FastAPI application entry point for Gridgate.

Exposes the RBAC engine over HTTP: login and session tokens, user/role/
permission administration, and permission-gated routes.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one access-log line per request

Lifespan opens the store and builds every service on startup and disposes
the engine on shutdown. Services live on app.state; route handlers read them
from request.app.state and never construct their own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import AdminOnlyResponse, ErrorDetail, ErrorResponse, HealthResponse, IdentityResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.permissions import router as permissions_router
from api.routes.v1.roles import router as roles_router
from api.routes.v1.users import router as users_router
from auth.dependencies import require_permission
from auth.models import TokenIdentity
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    GridgateError,
    InternalError,
    NotFoundError,
    RoleInUseError,
    ValidationError,
)
from rbac.graph import RoleGraphManager
from rbac.resolver import PermissionResolver
from rbac.store import RbacStore
from rbac.users import UserManager

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gridgate.api")

# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def attach_services(app: FastAPI, store: RbacStore, settings: Settings) -> None:
    """Build every service around store and hang them on app.state.

    Shared by the lifespan and by tests that patch it, so both wire the
    application identically.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(settings.secret_key, expire_seconds=settings.token_expire_seconds)
    app.state.settings = settings
    app.state.store = store
    app.state.hasher = hasher
    app.state.tokens = tokens
    app.state.resolver = PermissionResolver(store)
    app.state.graph = RoleGraphManager(store)
    app.state.users = UserManager(store, hasher)
    app.state.auth_service = AuthService(store, hasher, tokens)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store on startup, dispose of it on shutdown.

    Settings are read exactly once here. Everything downstream receives its
    configuration through constructor arguments.
    """
    settings = get_settings()
    logger.info("Gridgate API starting up")
    store = RbacStore(settings.database_url)
    attach_services(app, store, settings)
    logger.info("RBAC store initialized")

    yield

    store.close()
    logger.info("Gridgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gridgate API",
    description="Role-based access control: session tokens, roles, permissions and gated routes.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Host and origin lists come from settings at import time; they are
# deployment constants, not per-request state.
# ---------------------------------------------------------------------------

_http_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_http_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_http_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(roles_router, prefix="/api/v1", tags=["Roles"])
app.include_router(permissions_router, prefix="/api/v1", tags=["Permissions"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

# Looked up along the exception's MRO, so the most specific class wins:
# RoleInUseError is a ConflictError but reports 400.
_ERROR_STATUS: dict[type, int] = {
    RoleInUseError: 400,
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    InternalError: 500,
}


def _status_for(exc: GridgateError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]
    return 500


@app.exception_handler(GridgateError)
async def domain_error_handler(request: Request, exc: GridgateError) -> JSONResponse:
    """Translate a domain error into its status code and error envelope."""
    status = _status_for(exc)
    message = exc.message
    if status >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        if not request.app.state.settings.debug:
            message = "An unexpected error occurred."
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with structured error when request body or path params fail validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on the Starlette base class so router-level 404 and 405
    responses for unknown paths and methods use the same envelope.

    Route handlers and the access guard raise HTTPException with a
    {"code", "message"} dict as detail. When detail is already a structured
    dict, use it directly as the error field rather than stringifying it --
    str(dict) produces a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is always logged with its traceback. It reaches the
    response body (as detail) only when DEBUG is on.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    settings = getattr(request.app.state, "settings", None)
    detail = str(exc) if settings is not None and settings.debug else None
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
                detail=detail,
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health and demo endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and per-component status.

    The process answering is enough for status "healthy"; a database that
    cannot run SELECT 1 is reported under components without failing the
    request.
    """
    store: RbacStore = request.app.state.store
    try:
        store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})


@app.get("/api/v1/admin-only", response_model=AdminOnlyResponse, tags=["Auth"])
def admin_only(identity: TokenIdentity = Depends(require_permission("manage_users"))) -> AdminOnlyResponse:
    """Example route gated on manage_users."""
    return AdminOnlyResponse(
        message="Welcome, administrator.",
        user=IdentityResponse.from_domain(identity),
    )
