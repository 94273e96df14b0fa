"""Admission endpoints called by the platform's request handlers.

Each handler asks the gate before doing rate-limited work (sign-in attempts,
AI generation, checkout sessions, outbound email, exports) and turns a denial
into its own "too many requests" response or user-visible notice.
"""

from __future__ import annotations

import logging
from typing import Mapping

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from practice_gate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitConfig
from practice_gate.adapters.rate_limit.policies import get_policy
from practice_gate.core.auth import verify_api_key
from practice_gate.core.config import settings
from practice_gate.core.logging import hash_identifier
from practice_gate.core.rate_limit import (
    build_rate_limit_headers,
    enforce_rate_limit,
    get_rate_limit_policies,
    get_rate_limiter,
)
from practice_gate.schemas.limits import (
    CheckRequest,
    CheckResponse,
    CleanupResponse,
    PolicyListResponse,
    PolicyResponse,
    StoreStatsResponse,
)
from practice_gate.utils.validation import validate_identifier

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/limits",
    tags=["Limits"],
    dependencies=[Depends(verify_api_key)],
)

# Maintenance routes spend the service preset. Admission routes (check, reset)
# do not: every platform handler shares one API key, so gating them would make
# unrelated identifiers compete for a single budget.
_SERVICE_GATE = [Depends(enforce_rate_limit())]


def _limiter_key(policy: str, identifier: str) -> str:
    # Presets never share counters for the same caller.
    return f"{policy}:{identifier}"


@router.get("/policies", response_model=PolicyListResponse, dependencies=_SERVICE_GATE)
def list_policies(
    policies: Mapping[str, RateLimitConfig] = Depends(get_rate_limit_policies),
) -> PolicyListResponse:
    """List the named presets and their exact limits."""
    return PolicyListResponse(
        policies=[PolicyResponse.from_config(name, config) for name, config in policies.items()]
    )


@router.get("/stats", response_model=StoreStatsResponse, dependencies=_SERVICE_GATE)
def store_stats(
    request: Request,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> StoreStatsResponse:
    """Store size and sweep activity; never exposes identifiers."""
    store = getattr(limiter, "store", None)
    stats: dict = dict(store.stats()) if store is not None else {"entries": 0}

    sweeper = getattr(request.app.state, "rate_limit_sweeper", None)
    if sweeper is not None:
        sweeper_status = sweeper.status()
        stats["sweeper_running"] = sweeper_status["running"]
        stats["sweeper_runs"] = sweeper_status["runs"]

    return StoreStatsResponse(**stats)


@router.post("/cleanup", response_model=CleanupResponse, dependencies=_SERVICE_GATE)
def run_cleanup(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> CleanupResponse:
    """Sweep expired windows now instead of waiting for the background pass."""
    limiter.cleanup()
    store = getattr(limiter, "store", None)
    return CleanupResponse(entries=len(store) if store is not None else 0)


@router.post(
    "/{policy}/check",
    response_model=CheckResponse,
    responses={429: {"model": CheckResponse, "description": "Rate limit exceeded"}},
)
def check_limit(
    policy: str,
    body: CheckRequest,
    response: Response,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
    policies: Mapping[str, RateLimitConfig] = Depends(get_rate_limit_policies),
):
    """Check and consume one slot of ``policy`` for ``identifier``.

    An allowed result has already been counted; callers must not repeat the
    check for the same logical request. A denial returns HTTP 429 with the
    same body and ``Retry-After``.
    """
    config = get_policy(policy, policies)
    policy_name = policy.strip().upper()
    identifier = validate_identifier(body.identifier, max_length=settings.app.max_identifier_chars)

    result = limiter.check(_limiter_key(policy_name, identifier), config)
    payload = CheckResponse.from_result(policy_name, result)
    headers = build_rate_limit_headers(result, now=limiter.now())

    if result.allowed:
        logger.info(
            "limits.check_allowed",
            extra={
                "policy": policy_name,
                "identifier_hash": hash_identifier(identifier),
                "remaining": result.remaining,
            },
        )
        if settings.app.rate_limit_include_headers:
            response.headers.update(headers)
        return payload

    logger.warning(
        "limits.check_denied",
        extra={
            "policy": policy_name,
            "identifier_hash": hash_identifier(identifier),
            "retry_after_s": headers["Retry-After"],
        },
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=payload.model_dump(),
        headers=headers if settings.app.rate_limit_include_headers else None,
    )


@router.delete("/{policy}/{identifier:path}", status_code=status.HTTP_204_NO_CONTENT)
def reset_limit(
    policy: str,
    identifier: str,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
    policies: Mapping[str, RateLimitConfig] = Depends(get_rate_limit_policies),
) -> None:
    """Forget the window for ``identifier`` under ``policy``. Idempotent.

    ``identifier`` may span path segments, so composite keys such as
    ``org/1`` can be reset the same way they were checked.
    """
    get_policy(policy, policies)
    policy_name = policy.strip().upper()
    identifier = validate_identifier(identifier, max_length=settings.app.max_identifier_chars)

    limiter.reset(_limiter_key(policy_name, identifier))
    logger.info(
        "limits.reset",
        extra={"policy": policy_name, "identifier_hash": hash_identifier(identifier)},
    )
