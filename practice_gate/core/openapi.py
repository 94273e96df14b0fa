"""OpenAPI customization for the gate.

Adds the ``X-API-Key`` security scheme, tag descriptions, and documents the
rate limit headers that every gated operation may return.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = (
    {
        "name": "Limits",
        "description": "Rate limit admission, reset and maintenance.",
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
)

_RATE_LIMIT_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "ISO-8601 time at which the window resets.",
        "schema": {"type": "string", "format": "date-time"},
    },
}


def _is_public(path: str) -> bool:
    return path.endswith("/health")


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema carries auth and headers.

    - Global API key requirement; health endpoints opt out with ``security: []``
    - Tag descriptions for Limits and Health
    - A documented 429 response with rate limit headers on gated operations
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Shared service key issued to the platform's request handlers.",
            },
        )
        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        known = {t.get("name") for t in tags}
        tags.extend(dict(tag) for tag in _TAGS if tag["name"] not in known)

        for path, methods in schema.get("paths", {}).items():
            for method, operation in methods.items():
                if not isinstance(operation, dict):
                    continue
                if _is_public(path):
                    operation["security"] = []
                    continue
                # Resetting a window never consumes budget.
                if method == "delete":
                    continue
                responses = operation.setdefault("responses", {})
                too_many = responses.setdefault("429", {"description": "Rate limit exceeded"})
                too_many.setdefault("headers", {}).update(
                    {
                        **_RATE_LIMIT_HEADERS,
                        "Retry-After": {
                            "description": "Seconds until the window resets.",
                            "schema": {"type": "integer"},
                        },
                    }
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
