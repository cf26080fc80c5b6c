"""OpenAPI customization.

Adds tag descriptions and documents the admin session cookie as an API key
security scheme on the ``/api/admin`` operations that require it. Public
visitor endpoints carry no security requirement.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from app.core.config import settings

_PUBLIC_ADMIN_PATHS = {"/api/admin/login", "/api/admin/logout"}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation with tags and the admin cookie scheme."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "AdminCookie",
            {
                "type": "apiKey",
                "in": "cookie",
                "name": settings.admin.cookie_name,
                "description": "Signed admin session cookie issued by /api/admin/login.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        desired_tags = [
            {"name": "Visualize", "description": "Rug-in-room generation and daily quota."},
            {"name": "Catalog", "description": "Sample rooms, rugs and wizard options."},
            {"name": "Admin", "description": "Admin session login."},
            {"name": "Health", "description": "Liveness checks."},
        ]
        for tag in desired_tags:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/api/admin") or path in _PUBLIC_ADMIN_PATHS:
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"AdminCookie": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
