"""Admin session token logic.

Admins log in with a configured username/password and receive a signed
token in an HTTP-only cookie:

    base64url(json{"u": username, "iat": issued_at_ms}) "." base64url(hmac_sha256)

The HMAC key is the admin password, so changing the password invalidates
every outstanding token. Tokens expire after ADMIN_TOKEN_MAX_AGE_SECONDS.

Design principles:
- Pure sign/verify functions, testable without FastAPI
- Constant-time comparisons for credentials and signatures
- Dependency Injection: ``require_admin`` used via FastAPI Depends()
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass

from fastapi import Request

from app.core.config import settings
from app.core.errors import AuthenticationAppError, ConfigurationAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

_MISSING_SECRET = "missing_admin_password"


@dataclass(frozen=True)
class AdminTokenCheck:
    ok: bool
    username: str | None = None


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def safe_equal(a: str, b: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(a.encode(), b.encode())


def sign_admin_payload(payload_b64: str, secret: str) -> str:
    digest = hmac.new((secret or _MISSING_SECRET).encode(), payload_b64.encode(), hashlib.sha256)
    return _b64url_encode(digest.digest())


def create_admin_token(username: str, secret: str, *, now_ms: int | None = None) -> str:
    """Build a signed admin token for ``username``."""
    issued_at = int(time.time() * 1000) if now_ms is None else now_ms
    payload = json.dumps({"u": username, "iat": issued_at}, separators=(",", ":"))
    payload_b64 = _b64url_encode(payload.encode("utf-8"))
    return f"{payload_b64}.{sign_admin_payload(payload_b64, secret)}"


def verify_admin_token(
    token: str | None,
    secret: str,
    *,
    max_age_seconds: int,
    now_ms: int | None = None,
) -> AdminTokenCheck:
    """Validate signature, payload shape and age of an admin token.

    Never raises; any malformed input yields ``AdminTokenCheck(ok=False)``.
    """
    if not token:
        return AdminTokenCheck(ok=False)

    parts = str(token).split(".")
    if len(parts) != 2:
        return AdminTokenCheck(ok=False)
    payload_b64, signature = parts

    if not safe_equal(signature, sign_admin_payload(payload_b64, secret)):
        return AdminTokenCheck(ok=False)

    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return AdminTokenCheck(ok=False)

    if not isinstance(payload, dict):
        return AdminTokenCheck(ok=False)

    username = str(payload.get("u") or "")
    try:
        issued_at = float(payload.get("iat") or 0)
    except (TypeError, ValueError):
        return AdminTokenCheck(ok=False)

    if not username or not issued_at > 0:
        return AdminTokenCheck(ok=False)

    current = int(time.time() * 1000) if now_ms is None else now_ms
    if current - issued_at > max_age_seconds * 1000:
        return AdminTokenCheck(ok=False)

    return AdminTokenCheck(ok=True, username=username)


def authenticate_admin(username: str, password: str) -> str:
    """Check admin credentials and return a fresh token.

    Raises:
        ConfigurationAppError: If admin credentials are not configured.
        AuthenticationAppError: If the credentials do not match.
    """
    cfg = settings.admin
    if not cfg.username or not cfg.password:
        logger.error("admin.login_unconfigured")
        raise ConfigurationAppError(
            code="admin_not_configured",
            message="Admin credentials not configured",
            details={"hint": "Set ADMIN_USERNAME and ADMIN_PASSWORD"},
        )

    # Evaluate both comparisons so timing does not reveal which one failed
    user_ok = safe_equal(username or "", cfg.username)
    pass_ok = safe_equal(password or "", cfg.password)
    if not (user_ok and pass_ok):
        logger.warning(
            "admin.login_failed",
            extra={"username_hash": hash_identifier(username or "")},
        )
        raise AuthenticationAppError(
            code="invalid_credentials",
            message="Invalid username or password",
        )

    logger.info("admin.login_success")
    return create_admin_token(cfg.username, cfg.password)


def check_admin_request(request: Request) -> AdminTokenCheck:
    token = request.cookies.get(settings.admin.cookie_name)
    return verify_admin_token(
        token,
        settings.admin.password,
        max_age_seconds=settings.admin.token_max_age_seconds,
    )


async def require_admin(request: Request) -> str:
    """FastAPI dependency guarding admin-only routes.

    Usage:
        @router.post("/admin/thing", dependencies=[Depends(require_admin)])

    Returns:
        The authenticated admin username.

    Raises:
        AuthenticationAppError: 401 ``unauthorized`` if the cookie is
            missing, forged or expired.
    """
    check = check_admin_request(request)
    if not check.ok:
        logger.warning("admin.unauthorized", extra={"request_path": request.url.path})
        raise AuthenticationAppError(code="unauthorized", message="Unauthorized")
    return check.username or ""
