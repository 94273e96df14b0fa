"""Pydantic schemas for the rate limit gate endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from practice_gate.adapters.rate_limit.base import RateLimitConfig, RateLimitResult


class PolicyResponse(BaseModel):
    """One named preset."""

    name: str = Field(..., description="Preset name, e.g. 'AUTH' or 'EXPORT'.")
    max_requests: int = Field(..., description="Requests admitted per window.")
    window_ms: int = Field(..., description="Window length in milliseconds.")

    @classmethod
    def from_config(cls, name: str, config: RateLimitConfig) -> "PolicyResponse":
        return cls(name=name, max_requests=config.max_requests, window_ms=config.window_ms)


class PolicyListResponse(BaseModel):
    policies: List[PolicyResponse] = Field(default_factory=list)


class CheckRequest(BaseModel):
    """Admission request from one of the platform's handlers."""

    identifier: str = Field(
        ...,
        description=(
            "Caller-chosen key partitioning the limit: user id, client IP or a "
            "logical action name. Scoped to the policy in the URL."
        ),
        examples=["4f1c2b9e-6a1d-4c55-9d0e-2f6d8f0a7c11"],
    )


class CheckResponse(BaseModel):
    """Admission decision. The same body is returned with HTTP 429 on denial."""

    policy: str = Field(..., description="Preset that was applied.")
    allowed: bool = Field(..., description="Whether the request may proceed.")
    remaining: int = Field(..., description="Requests left in the current window.")
    limit: int = Field(..., description="Ceiling of the applied preset.")
    reset_time: int = Field(
        ..., description="Epoch milliseconds at which the current window resets."
    )
    reset_at: str = Field(..., description="reset_time as an ISO-8601 UTC string.")

    @classmethod
    def from_result(cls, policy: str, result: RateLimitResult) -> "CheckResponse":
        return cls(
            policy=policy,
            allowed=result.allowed,
            remaining=result.remaining,
            limit=result.limit,
            reset_time=result.reset_time,
            reset_at=result.reset_at_iso,
        )


class CleanupResponse(BaseModel):
    entries: int = Field(..., description="Entries left in the store after the sweep.")


class StoreStatsResponse(BaseModel):
    entries: int = Field(..., description="Entries currently held.")
    creations: int = Field(0, description="Windows opened since startup.")
    deletions: int = Field(0, description="Entries removed by reset or sweeps.")
    sweeper_running: bool = Field(False, description="Whether the background sweep is active.")
    sweeper_runs: int = Field(0, description="Completed background sweeps.")
