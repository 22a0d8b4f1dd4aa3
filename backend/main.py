"""ChatGrow Growth Engine - Main FastAPI Application."""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.middleware.rate_limit import limiter
from api.routes import api_router
from infrastructure.config import get_settings
from infrastructure.database import close_db, init_db
from infrastructure.logging_config import setup_logging
from services.growth_scheduler import growth_scheduler

settings = get_settings()
logger = logging.getLogger(__name__)

# Sentry error tracking, initialised at module level so startup errors are captured too
if settings.sentry_dsn:
    import logging as _logging

    # Reject malformed DSNs up front
    _dsn = settings.sentry_dsn
    if not _dsn.startswith("https://") or "@" not in _dsn:
        logger.warning(
            "SENTRY_DSN appears malformed: %s. Sentry will not be initialized.",
            _dsn[:30],
        )
    else:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration
        from sentry_sdk.integrations.redis import RedisIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=_dsn,
            environment=settings.environment,
            integrations=[
                FastApiIntegration(transaction_style="url"),
                SqlalchemyIntegration(),
                RedisIntegration(),
                LoggingIntegration(level=_logging.INFO, event_level=_logging.ERROR),
            ],
            traces_sample_rate=0.1 if settings.is_production else 1.0,
            profiles_sample_rate=0.05 if settings.is_production else 0.0,
            send_default_pii=False,
        )
        logger.info("Sentry error tracking initialised (env=%s)", settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Logging first so startup messages use the right format.
    setup_logging(
        json_output=not settings.debug and settings.is_production,
        level="DEBUG" if settings.debug else "INFO",
    )

    # Startup
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Environment: %s", settings.environment)
    logger.info("CORS origins raw: %r", settings.cors_origins)
    logger.info("CORS origins list: %r", settings.cors_origins_list)

    settings.validate_production_secrets()

    if settings.is_development:
        logger.info("Development mode - initializing database...")
        await init_db()

    # When rate limits are shared through Redis, confirm it is reachable
    if settings.rate_limit_storage_uri.startswith(("redis://", "rediss://")):
        try:
            import redis.asyncio as aioredis

            _redis_check = aioredis.from_url(
                settings.rate_limit_storage_uri,
                max_connections=20,
            )
            await _redis_check.ping()
            await _redis_check.aclose()
            logger.info("Redis connectivity confirmed for rate limiter")
        except Exception as _redis_err:
            logger.critical(
                "Rate limit storage is unreachable (%s). "
                "Rate-limited endpoints will fail until Redis is back.",
                _redis_err,
            )

    # CORS origins must match the FRONTEND_URL host
    from urllib.parse import urlparse as _urlparse

    _frontend_host = _urlparse(settings.frontend_url).netloc if settings.frontend_url else None
    if _frontend_host and settings.environment == "production":
        for _origin in settings.cors_origins_list:
            _origin_host = _urlparse(_origin).netloc
            if (
                _origin_host
                and _origin_host != _frontend_host
                and not _origin_host.endswith("." + _frontend_host)
            ):
                logger.warning(
                    "CORS origin '%s' does not match FRONTEND_URL host '%s'. "
                    "This may allow credential leakage to unintended origins.",
                    _origin,
                    _frontend_host,
                )

    # Start growth aggregation scheduler in background
    scheduler_task = None
    if settings.growth_scheduler_enabled:
        logger.info("Starting growth scheduler...")
        scheduler_task = asyncio.create_task(growth_scheduler.start(), name="growth-scheduler")

    logger.info("Application started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down...")

    # Stop scheduler; cancellation interrupts the sleep or a running cycle
    if scheduler_task is not None:
        logger.info("Stopping growth scheduler...")
        await growth_scheduler.stop()
        scheduler_task.cancel()

        try:
            await asyncio.wait_for(asyncio.shield(scheduler_task), timeout=30.0)
        except (TimeoutError, asyncio.CancelledError):
            pass

    await close_db()
    logger.info("Application stopped.")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Acquisition analytics for ChatGrow businesses",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Rate limiting: wire the slowapi limiter so that:
# 1. app.state.limiter is set (required by SlowAPIMiddleware and @limiter.limit decorators)
# 2. SlowAPIMiddleware intercepts every request and applies the default 100/minute
#    global limit; per-endpoint @limiter.limit decorators override this automatically
# 3. The RateLimitExceeded exception handler returns a proper 429 response
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Reject request bodies larger than 5MB
_MAX_BODY_SIZE = 5 * 1024 * 1024  # 5MB


@app.middleware("http")
async def limit_request_body_size(request: Request, call_next):
    if request.method in ("POST", "PUT", "PATCH"):
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > _MAX_BODY_SIZE:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large (max 5MB)"},
            )
    return await call_next(request)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Full stack trace in dev only; production logs type and message.
    # Message truncated to 200 chars.
    if settings.environment == "production":
        logger.error("Unhandled exception: %s: %s", type(exc).__name__, str(exc)[:200])
    else:
        logger.error("Unhandled exception: %s", str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time"] = f"{duration_ms:.1f}ms"

    # Skip logging for health check endpoints to avoid log noise
    path = request.url.path
    if not path.startswith("/api/v1/health"):
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            path,
            response.status_code,
            round(duration_ms, 1),
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 1),
                "request_id": getattr(request.state, "request_id", None),
                "business_id": getattr(request.state, "business_id", None),
            },
        )
    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    incoming = request.headers.get("X-Request-ID")
    # Only a valid UUID from the caller is reused.
    if incoming:
        try:
            uuid.UUID(incoming)
            request_id = incoming
        except ValueError:
            request_id = str(uuid.uuid4())
    else:
        request_id = str(uuid.uuid4())
    # Kept on request.state for log correlation.
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.environment == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.is_development else "disabled",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=settings.workers if not settings.is_development else 1,
    )
