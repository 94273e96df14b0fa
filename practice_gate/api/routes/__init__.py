from __future__ import annotations

from practice_gate.api.routes.health import router as health_router
from practice_gate.api.routes.limits import router as limits_router

__all__ = ["health_router", "limits_router"]
