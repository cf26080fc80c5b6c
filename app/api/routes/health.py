from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for the reverse proxy and uptime checks.

    Does not touch the usage store or the image relay.
    """

    return {"status": "ok"}
