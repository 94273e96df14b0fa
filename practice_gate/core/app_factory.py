"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifetime of the process-wide rate limiter and its cleanup sweep.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping

from fastapi import FastAPI

from practice_gate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig
from practice_gate.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from practice_gate.adapters.rate_limit.policies import RATE_LIMITS
from practice_gate.adapters.rate_limit.sweeper import CleanupSweeper
from practice_gate.api.routes import health_router, limits_router
from practice_gate.core.config import settings
from practice_gate.core.exception_handlers import setup_exception_handlers
from practice_gate.core.logging import configure_logging
from practice_gate.core.middleware import request_id_middleware
from practice_gate.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    sweeper: CleanupSweeper | None = app.state.rate_limit_sweeper
    if sweeper is not None:
        sweeper.start()
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "cleanup_enabled": sweeper is not None,
            "policies": sorted(app.state.rate_limit_policies),
        },
    )
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.stop()
        logger.info("app.shutdown")


def create_app(
    *,
    limiter: AbstractRateLimiter | None = None,
    policies: Mapping[str, RateLimitConfig] = RATE_LIMITS,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Limiter shared by every route; a FixedWindowRateLimiter
            sized from settings when omitted.
        policies: Preset table handed to the routes.
        configure_logs: Install the root log handler (tests may skip it).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    if configure_logs:
        # Logging first so subsequent init logs are formatted as desired
        configure_logging(settings.log)

    app = FastAPI(
        title="Practice Gate",
        description=(
            "Fixed-window admission control for the practice-management "
            "platform's request handlers: sign-in attempts, AI generation, "
            "checkout, outbound email and data exports. Requires X-API-Key."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_lifespan,
    )

    if limiter is None:
        limiter = FixedWindowRateLimiter(
            eviction_threshold=settings.app.rate_limit_eviction_threshold,
        )
    app.state.rate_limiter = limiter
    app.state.rate_limit_policies = policies
    app.state.rate_limit_sweeper = (
        CleanupSweeper(
            limiter,
            interval_seconds=settings.app.rate_limit_cleanup_interval_seconds,
        )
        if settings.app.rate_limit_cleanup_enabled
        else None
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(limits_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
