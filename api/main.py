"""
api/main.py -- FastAPI application entry point for the SempreCheio auth API.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the frontend origins;
                              credentials allowed so the session cookies flow
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

security_headers adds nosniff, frame, referrer and permissions headers to every
response, plus HSTS in production.

Lifespan opens the account store on startup and closes it on shutdown.

Every error leaves the API in one envelope:
    {"success": false, "message": "...", "code": "...", "errors": {...}?}
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
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.cookies import clear_auth_cookies
from auth.errors import AuthError, MethodNotAllowed, NotFound
from auth.store import SqlAccountStore
from core.config import get_settings
from core.redaction import RedactingFilter

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RedactingFilter())
logger = logging.getLogger("semprecheio.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the account store for the server lifetime and close it on shutdown."""
    settings = get_settings()
    logger.info("SempreCheio auth API starting up (environment=%s)", settings.environment)
    app.state.account_store = SqlAccountStore(settings.database_url)
    if not app.state.account_store.has_accounts():
        logger.warning("Account store is empty -- create one with `python main.py create-account`")

    yield

    app.state.account_store.close()
    logger.info("SempreCheio auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SempreCheio Auth API",
    description="Authentication and authorization for the SempreCheioApp scheduling platform.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

_settings = get_settings()

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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


_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}
_HSTS = "max-age=63072000; includeSubDomains; preload"


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Hardening headers on every response, API and pages alike. HSTS only in production."""
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if get_settings().is_production:
        response.headers["Strict-Transport-Security"] = _HSTS
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
# Web page router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _envelope(status_code: int, message: str, code: str, errors: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, code=code, errors=errors).model_dump(exclude_none=True),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError raised by a dependency, the login flow or a route.

    A rejected token also deletes both session cookies so the browser stops
    presenting it.
    """
    response = _envelope(exc.status_code, exc.message, exc.code, exc.errors)
    if exc.clears_session:
        clear_auth_cookies(response)
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "Muitas tentativas. Tente novamente mais tarde.", "RATE_LIMITED")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation failures are 400 INVALID_DATA, keyed by field."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors[".".join(loc) or "body"] = err.get("msg", "invalid")
    return _envelope(400, "Dados inválidos", "INVALID_DATA", errors)


# Routing errors raised by Starlette itself, answered like the matching AuthError.
_FRAMEWORK_ERRORS: dict[int, type[AuthError]] = {404: NotFound, 405: MethodNotAllowed}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised HTTP errors (unknown route, method mismatch) in the same envelope."""
    known = _FRAMEWORK_ERRORS.get(exc.status_code)
    if known is not None:
        return _envelope(exc.status_code, known.message, known.code)
    return _envelope(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "Erro interno do servidor", "INTERNAL_ERROR")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Liveness plus a store round-trip. 503 when the store is unreachable."""
    store_ok = request.app.state.account_store.ping()
    body = HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=VERSION,
        environment=get_settings().environment,
        components={"account_store": "ok" if store_ok else "unavailable"},
    )
    return JSONResponse(status_code=200 if store_ok else 503, content=body.model_dump())
