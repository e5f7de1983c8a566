"""OpenAPI metadata and customization utilities.

Enriches the generated schema with:
- An API Key security scheme (``X-API-Key``)
- Per-path security: health is open, reading data is open with an optional
  key, everything else requires the key
- Tags metadata
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Data", "description": "Cached access to the remote dataset."},
    {"name": "Cache", "description": "Cache inspection, invalidation and service status."},
    {"name": "Health", "description": "Liveness checks."},
]

_OPEN_PATHS = ("/health",)
_OPTIONAL_KEY_PATHS = ("/v1/data",)


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and security metadata."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Required for refresh, cache management and status.",
            },
        )
        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        tags.extend(tag for tag in _TAGS if tag["name"] not in existing_tag_names)

        for path, methods in schema.get("paths", {}).items():
            if path in _OPEN_PATHS:
                security: list[dict[str, list]] = []
            elif path in _OPTIONAL_KEY_PATHS:
                # Empty requirement object marks the key as optional
                security = [{}, {"ApiKeyAuth": []}]
            else:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = security

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
