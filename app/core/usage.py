"""Usage ledger wiring for FastAPI routes.

This module wires the usage ledger into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on dependency functions only.
- Swap-friendly: the JSON file store sits behind AbstractUsageStore and can
  be replaced without touching routes.
- One ``RequestView`` per request, so an identity cookie issued early in the
  request is seen by the quota check and the final charge.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request, Response

from app.adapters.usage.json_file import JsonFileUsageStore
from app.core.config import settings
from app.core.logging import hash_identifier
from app.services.identity import RequestView, sanitize_cookie_token
from app.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


_ledger: UsageLedger | None = None
_ledger_config: tuple | None = None


def _current_config() -> tuple:
    cfg = settings.usage
    return (
        str(cfg.store_path),
        cfg.daily_limit,
        cfg.identity_mode,
        cfg.timezone,
        cfg.cookie_name,
        cfg.cookie_max_age_days,
        cfg.cookie_secure,
        cfg.real_ip_header,
        cfg.forwarded_for_header,
    )


def get_usage_ledger() -> UsageLedger:
    """Return the process-wide usage ledger.

    The instance is cached in-module so every request goes through the same
    store and its lock. If configuration changes (primarily in tests), the
    ledger is rebuilt.

    Returns:
        UsageLedger: Configured ledger backed by the JSON file store.
    """

    global _ledger, _ledger_config

    config = _current_config()
    if _ledger is None or _ledger_config != config:
        cfg = settings.usage
        _ledger = UsageLedger(
            JsonFileUsageStore(cfg.store_path),
            daily_limit=cfg.daily_limit,
            identity_mode=cfg.identity_mode,
            timezone=cfg.timezone,
            cookie_name=cfg.cookie_name,
            cookie_max_age_days=cfg.cookie_max_age_days,
            cookie_secure=cfg.cookie_secure,
            real_ip_header=cfg.real_ip_header,
            forwarded_for_header=cfg.forwarded_for_header,
        )
        _ledger_config = config
        logger.info(
            "usage.ledger_configured",
            extra={
                "store_path": str(cfg.store_path),
                "daily_limit": cfg.daily_limit,
                "identity_mode": cfg.identity_mode,
                "timezone": cfg.timezone,
            },
        )

    return _ledger


def get_request_view(request: Request) -> RequestView:
    """Return the identity view for this request, creating it once."""
    view = getattr(request.state, "identity_view", None)
    if view is None:
        view = RequestView.from_request(request)
        request.state.identity_view = view
    return view


async def ensure_visitor_identity(
    request: Request,
    response: Response,
    ledger: UsageLedger = Depends(get_usage_ledger),
) -> RequestView:
    """FastAPI dependency issuing the visitor identity cookie when missing.

    A newly issued token is also kept on ``request.state`` so error
    responses can carry the cookie (see ``reissue_identity_cookie``).

    Returns:
        The request's identity view, including a freshly issued token.
    """
    view = get_request_view(request)
    had_token = bool(sanitize_cookie_token(view.cookies.get(ledger.cookie_name)))
    token = ledger.ensure_identity_cookie(view, response)
    if not had_token:
        # Error handlers build their own response and re-send this cookie
        request.state.issued_identity_token = token
    logger.debug("usage.identity_ready", extra={"token_hash": hash_identifier(token)})
    return view


def reissue_identity_cookie(request: Request, response: Response) -> None:
    """Copy a cookie issued earlier in this request onto ``response``."""
    token = getattr(request.state, "issued_identity_token", None)
    if token:
        get_usage_ledger().set_identity_cookie(response, token)
