"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (logging, Redis, database).
Middleware, CORS, the auth gate, and routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from authcore import __version__
from authcore.api import api_router
from authcore.auth.dependencies import get_token_service
from authcore.config import settings
from authcore.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The signing key is read once here via get_token_service()
    and stays fixed for the life of the process.
    """
    configure_logging(settings.log_level, settings.log_json)
    get_token_service()
    logger.info(
        "authcore.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from authcore.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("authcore.redis_connected", url=settings.redis_url)
    except (RedisError, OSError) as e:
        # Redis is optional; only rate limiting needs it
        logger.warning("authcore.redis_unavailable", error=str(e))

    yield

    logger.info("authcore.shutdown")
    await close_redis()

    from authcore.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="authcore",
        description="Authentication and authorization core: session tokens, "
        "email verification, role-based access",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → AuthGate → handler

    from authcore.middleware.auth_gate import AuthenticationGate
    from authcore.middleware.rate_limit import RateLimitMiddleware
    from authcore.middleware.request_id import RequestIdMiddleware
    from authcore.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        AuthenticationGate,
        token_service=get_token_service(),
        public_paths=settings.resolved_public_paths,
    )
    # Outside the gate: CORS answers preflights before any token check
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
        auth_paths=(
            f"{settings.api_prefix}/auth/login",
            f"{settings.api_prefix}/auth/register",
            f"{settings.api_prefix}/auth/resend-verification",
        ),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: authcore.main:app)
app = create_app()
