"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (signing codec, Redis,
database engine). Middleware, CORS, error handlers and routers are all
registered here; each concern lives in its own module.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tasktrack import __version__
from tasktrack.api import api_router
from tasktrack.api.errors import register_error_handlers
from tasktrack.auth.jwt import get_token_codec
from tasktrack.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The token codec is built here once so a bad signing config
    fails the boot, not the first request.
    """
    logger.info(
        "tasktrack.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )
    codec = get_token_codec()
    logger.info(
        "tasktrack.token_codec_ready",
        algorithm=codec.algorithm,
        ttl_ms=codec.ttl_ms,
    )

    from tasktrack.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("tasktrack.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional; only rate limiting is lost
        logger.warning("tasktrack.redis_unavailable", error=str(e))

    yield

    logger.info("tasktrack.shutdown")
    await close_redis()

    from tasktrack.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="TaskTrack",
        description="Multi-tenant task tracking with stateless bearer-token auth",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from tasktrack.middleware.rate_limit import RateLimitMiddleware
    from tasktrack.middleware.request_id import RequestIdMiddleware
    from tasktrack.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Authorization"],
    )

    register_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: tasktrack.main:app)
app = create_app()
