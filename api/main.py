"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with status and latency
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the process-wide objects once (hasher, token issuer, user
store, auth service, product store) and hangs them on app.state. Nothing is
module-global: tests swap in their own instances by replacing the lifespan.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse, ProtectedResponse, TokenInfo, UserOut
from api.routes.auth import router as auth_router
from api.routes.products import router as products_router
from api.routes.users import router as users_router
from auth.dependencies import authenticate_token
from auth.errors import AuthError, TokenExpired, Unauthorized
from auth.models import User
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from catalog.store import ProductStore
from core.config import Settings, get_settings

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, _settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")


# ---------------------------------------------------------------------------
# Component assembly
# ---------------------------------------------------------------------------


def build_components(app: FastAPI, settings: Settings) -> None:
    """Construct the auth and catalog objects and attach them to app.state.

    Wiring: hasher -> store -> service, issuer -> service. tests/conftest.py
    mirrors this graph with a fake clock on the issuer.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    issuer = TokenIssuer(
        secret_key=settings.secret_key,
        algorithm=settings.jwt_algorithm,
        access_expire_seconds=settings.access_token_expire_seconds,
        refresh_expire_seconds=settings.refresh_token_expire_seconds,
    )
    user_store = UserStore(hasher)
    app.state.token_issuer = issuer
    app.state.user_store = user_store
    app.state.auth_service = AuthService(user_store, issuer)
    app.state.product_store = ProductStore()
    app.state.started_at = time.monotonic()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every in-memory component on startup; drop them on shutdown.

    There is no durable state, so shutdown only logs. Everything registered
    or issued during the run is gone after a restart.
    """
    logger.info("AuthGate API starting up")
    build_components(app, _settings)
    if _settings.seed_demo_data:
        await app.state.user_store.seed_demo_data()
        app.state.product_store.seed_demo_data()
    logger.info(
        "Auth initialized (access_ttl=%ds, refresh_ttl=%ds, bcrypt_rounds=%d)",
        _settings.access_token_expire_seconds,
        _settings.refresh_token_expire_seconds,
        _settings.bcrypt_rounds,
    )

    yield

    logger.info("AuthGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AuthGate API",
    description="JWT access/refresh authentication with role-based authorization.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each add_middleware() call around the ones registered before
# it, so the LAST registration sees the request FIRST. Register innermost
# first: SlowAPI, then CORS (so 429 responses still carry CORS headers), then
# the request logger via @app.middleware.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
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
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(products_router, prefix="/api", tags=["Products"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, error: ErrorResponse, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate the auth/catalog error taxonomy into the HTTP envelope."""
    headers = None
    if isinstance(exc, TokenExpired):
        headers = {"WWW-Authenticate": 'Bearer error="invalid_token", error_description="expired"'}
    elif isinstance(exc, Unauthorized):
        headers = {"WWW-Authenticate": "Bearer"}
    return _error_response(
        exc.status_code,
        ErrorResponse(message=exc.message, code=exc.code, errors=exc.errors),
        headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error_response(
        429,
        ErrorResponse(message="Too many requests.", code="rate_limited", detail=str(exc.detail)),
        {"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one "field: problem" message per failed constraint."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error_response(400, ErrorResponse(message="Validation failed", code="validation_error", errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown route, wrong method) in the same envelope."""
    return _error_response(
        exc.status_code,
        ErrorResponse(message=str(exc.detail), code=f"http_{exc.status_code}"),
        getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only. The response carries the exception
    text solely in DEBUG mode.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(
        500,
        ErrorResponse(
            message="An unexpected error occurred.",
            code="internal_error",
            detail=str(exc) if _settings.debug else None,
        ),
    )


# ---------------------------------------------------------------------------
# Service endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def index() -> dict:
    """Endpoint overview for people poking at the API with curl."""
    return {
        "success": True,
        "message": "AuthGate -- JWT authentication API",
        "version": VERSION,
        "docs": "/docs",
        "authentication": {
            "tokenType": "Bearer",
            "headerFormat": "Authorization: Bearer <token>",
            "accessTokenExpiresIn": _settings.access_token_expire_seconds,
            "refreshTokenExpiresIn": _settings.refresh_token_expire_seconds,
        },
    }


@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and uptime."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return HealthResponse(
        version=VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(time.monotonic() - started_at, 3),
    )


@app.get("/api/protected", tags=["Auth"], response_model=ProtectedResponse)
async def protected(request: Request, current_user: User = Depends(authenticate_token)) -> ProtectedResponse:
    """Echo the caller and the claims of the access token they presented."""
    return ProtectedResponse(
        message="This is a protected route",
        user=UserOut.from_user(current_user),
        token_info=TokenInfo.from_claims(request.state.token_claims),
    )
