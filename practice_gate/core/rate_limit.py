"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

The limiter and the preset table are built once by the app factory and kept
on ``app.state``; routes receive them through the dependencies below instead
of reaching for module-level globals.

Rate limiting strategy for the service's own routes:
- Fixed-window limit per API key under the configured service policy.
- If API key is missing (e.g., auth disabled), fall back to client IP.
"""

from __future__ import annotations

import logging
from typing import Annotated, Awaitable, Callable, Mapping, NoReturn

from fastapi import Header, HTTPException, Request, Response, status

from practice_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)
from practice_gate.adapters.rate_limit.policies import get_policy, get_rate_limit_headers
from practice_gate.core.config import settings
from practice_gate.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter composed at startup for this application."""
    return request.app.state.rate_limiter


def get_rate_limit_policies(request: Request) -> Mapping[str, RateLimitConfig]:
    return request.app.state.rate_limit_policies


def build_rate_limit_headers(
    result: RateLimitResult,
    *,
    now: int,
) -> dict[str, str]:
    """Headers describing the caller's budget; denials add retry hints."""
    headers = get_rate_limit_headers(result.remaining, result.reset_time)
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds(now))
        headers["X-RateLimit-Limit"] = str(result.limit)
    return headers


def raise_rate_limited(
    result: RateLimitResult,
    *,
    now: int,
    detail: str = "Rate limit exceeded. Try again later.",
) -> NoReturn:
    """Translate a denial into HTTP 429 Too Many Requests."""
    headers = (
        build_rate_limit_headers(result, now=now)
        if settings.app.rate_limit_include_headers
        else None
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=detail,
        headers=headers,
    )


def _build_caller_key(request: Request, x_api_key: str | None) -> tuple[str, str]:
    """Return (key_type, namespaced limiter key) for the current caller."""
    if x_api_key:
        return "api_key", f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return "ip", f"ip:{client_host}"


def enforce_rate_limit(
    policy_name: str | None = None,
) -> Callable[..., Awaitable[None]]:
    """Build a dependency that gates a route with a named preset.

    Args:
        policy_name: Preset to enforce; ``APP_RATE_LIMIT_SERVICE_POLICY``
            when omitted.

    Returns:
        Async FastAPI dependency consuming one unit per request and raising
        HTTP 429 on denial.

    Usage:
        @router.post("/export", dependencies=[Depends(enforce_rate_limit("EXPORT"))])
    """

    async def dependency(
        request: Request,
        response: Response,
        x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    ) -> None:
        if not settings.app.rate_limit_enabled:
            return

        name = (policy_name or settings.app.rate_limit_service_policy).strip().upper()
        config = get_policy(name, get_rate_limit_policies(request))
        limiter = get_rate_limiter(request)
        key_type, caller_key = _build_caller_key(request, x_api_key)

        result = limiter.check(f"gate:{name}:{caller_key}", config)
        log_extra = {
            "policy": name,
            "key_type": key_type,
            "key_hash": hash_identifier(caller_key),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_ms": config.window_ms,
        }

        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
            if settings.app.rate_limit_include_headers:
                response.headers.update(get_rate_limit_headers(result.remaining, result.reset_time))
            return

        now = limiter.now()
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": result.retry_after_seconds(now)},
        )
        raise_rate_limited(result, now=now)

    return dependency
