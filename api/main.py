"""
api/main.py -- FastAPI application entry point for the Lost & Found service.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. ProxyHeadersMiddleware -- only when TRUST_PROXY=true; client/scheme from proxy
  2. TrustedHostMiddleware  -- rejects requests with unexpected Host headers
  3. CORSMiddleware         -- adds CORS headers for allowed browser origins
  4. SlowAPIMiddleware      -- enforces per-route rate limits from api.limiter

Lifespan constructs every stateful component explicitly (credential store,
session store, item store, policy, session manager) and tears them down
symmetrically on shutdown. Nothing is a module-level singleton.
"""

from __future__ import annotations

import asyncio
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
from starlette.exceptions import HTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.items import router as items_router
from auth.policy import AuthorizationPolicy
from auth.sessions import SessionManager, build_session_store
from auth.store import CredentialStore
from core.config import get_settings
from core.errors import LostFoundError
from items.store import ItemStore

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("lostfound.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


_PURGE_INTERVAL_SECONDS = 60 * 60


async def _purge_loop(app: FastAPI, interval: float = _PURGE_INTERVAL_SECONDS) -> None:
    """Drop expired sessions every interval seconds (hourly by default).

    Expired sessions are already rejected on read; this only keeps the
    session table from growing without bound. A failed pass is logged and the
    loop carries on with the next one.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(app.state.session_manager.purge_expired)
        except Exception:
            logger.exception("Session purge failed; retrying next interval")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Construct stateful components on startup and close them on shutdown.

    Startup order matters: the policy and session manager both depend on the
    credential store, and the purge task references the session manager.
    """
    settings = get_settings()
    logger.info("Lost & Found API starting up (auth_mode=%s)", settings.auth_mode.value)

    app.state.credential_store = CredentialStore(settings.database_url)
    app.state.session_store = build_session_store(settings)
    app.state.item_store = ItemStore(settings.database_url)
    app.state.policy = AuthorizationPolicy(app.state.credential_store, settings.auth_mode)
    app.state.session_manager = SessionManager(
        app.state.session_store,
        app.state.credential_store,
        settings.secret_key,
        ttl_seconds=settings.session_expire_seconds,
    )
    logger.info(
        "Auth initialized (session_backend=%s, admin_exists=%s)",
        settings.session_backend.value,
        app.state.policy.admin_exists(),
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.item_store.close()
    app.state.session_store.close()
    app.state.credential_store.close()
    logger.info("Lost & Found API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Lost & Found API",
    description="CNIC-gated lost and found reporting.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware in reverse registration order: the LAST
# add_middleware() call is the outermost layer. Register innermost first.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

if _settings.trust_proxy:
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])
app.include_router(items_router, prefix="/api", tags=["Items"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(LostFoundError)
async def lostfound_error_handler(request: Request, exc: LostFoundError) -> JSONResponse:
    """Render the auth/domain error taxonomy at the request boundary."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


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
                detail=str(exc.detail),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
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
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
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
    """Catch-all for unexpected server errors.

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
# No rate limit -- load balancer probes must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database probe."""
    try:
        request.app.state.credential_store.ping()
        database = "ok"
    except Exception:
        logger.exception("Health check database probe failed")
        database = "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})
