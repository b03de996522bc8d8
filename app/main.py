"""
Entry point for the Social Dashboard API.

Run with:
    uvicorn app.main:app --reload --port 8000
"""

import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager

# asyncpg is incompatible with ProactorEventLoop (Windows default in Python 3.8+).
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.config import settings

# ---------------------------------------------------------------------------
# Logging configuration — applied once at module load
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Silence noisy third-party loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

from app.core.cache import create_redis  # noqa: E402
from app.core.database import engine, ping_database  # noqa: E402
from app.core.exceptions import (  # noqa: E402
    ConfigurationError,
    ForbiddenError,
    ProvisioningConflictError,
    SsoError,
)
from app.core.limiter import limiter  # noqa: E402

# ---------------------------------------------------------------------------
# Lifespan: runs once on startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s v%s (environment=%s, cache ttl=%ss)",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.ENVIRONMENT,
        settings.cache_ttl,
    )

    app.state.redis = create_redis(settings.REDIS_URL)
    app.state.http_client = httpx.AsyncClient(timeout=settings.ANALYTICS_TIMEOUT_SECONDS)

    # Pre-warm the DB connection pool so the first user request is not slow.
    try:
        await ping_database()
        logger.info("Database connection pool warmed up.")
    except Exception as exc:
        logger.warning("Could not pre-warm DB pool: %s", exc)

    yield

    await app.state.http_client.aclose()
    await app.state.redis.aclose()
    await engine.dispose()
    logger.info("Clients closed, database engine disposed. Shutdown complete.")


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

from app.api.endpoints import auth, dashboard, internal  # noqa: E402

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Backend for the social media dashboard: SSO-backed authentication "
        "with organization selection and super-admin impersonation, internal "
        "user provisioning, and cached per-organization analytics."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Attach limiter state and rate limit exceeded handler
# ---------------------------------------------------------------------------

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
    # Same body for every cause: which check failed is only in the logs.
    return JSONResponse(status_code=403, content={"detail": ForbiddenError.detail})


@app.exception_handler(SsoError)
async def sso_error_handler(request: Request, exc: SsoError) -> JSONResponse:
    logger.warning("SSO call failed on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(ProvisioningConflictError)
async def provisioning_conflict_handler(
    request: Request, exc: ProvisioningConflictError
) -> JSONResponse:
    logger.warning("Provisioning conflict on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content={"detail": "Email is already registered to a different user"},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if settings.DEBUG else "An unexpected error occurred. Please try again later."
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


# ---------------------------------------------------------------------------
# Middleware — order matters: request logging wraps everything
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s → %d  (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "auth", "showorg", "impersonate"],
    expose_headers=["logout"],
)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(
    auth.router,
    prefix="/auth",
    tags=["Auth — SSO proxy"],
)

app.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"],
)

app.include_router(
    internal.router,
    prefix="/internal",
    tags=["Internal"],
)

# ---------------------------------------------------------------------------
# Health / root endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"], summary="Root")
async def root() -> dict:
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"], summary="Health check")
async def health_check() -> dict:
    return {"status": "healthy"}


@app.get("/health/db", tags=["Health"], summary="Database connectivity check")
async def health_db() -> dict:
    try:
        return {"status": "ok", "result": await ping_database()}
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "error": str(exc) if settings.DEBUG else "unreachable"}


@app.get("/health/cache", tags=["Health"], summary="Redis connectivity check")
async def health_cache(request: Request) -> dict:
    try:
        return {"status": "ok", "result": await request.app.state.redis.ping()}
    except RedisError as exc:
        logger.warning("Cache health check failed: %s", exc)
        return {"status": "error", "error": str(exc) if settings.DEBUG else "unreachable"}
