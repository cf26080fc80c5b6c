"""Per-visitor daily generation quota.

The ledger answers two questions for an anonymous web request: "has this
visitor used up today's quota?" and "record one more successful use". It
keeps a flat table of counters keyed by ``{scope}:{identity}_{YYYYMMDD}``
where ``scope`` is ``cookie`` or ``ip``. Days are evaluated in a fixed
reference timezone, so keys roll over at the same wall-clock moment for every
visitor and old keys are never reused.

Accounting rules:
- ``record_use`` increments every resolved key for the request.
- ``current_count`` reports the maximum across those keys, so a visitor
  seen through two identities is judged by the one that consumed more.
- Keys from other days are pruned whenever the table is loaded.

No ledger operation raises to its caller. Store write failures surface as
``UsageCharge.persisted = False`` and the computed count is still returned
(fail open).
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol
from zoneinfo import ZoneInfo

from app.adapters.usage.base import AbstractUsageStore, UsageTable
from app.core.logging import hash_identifier
from app.services.identity import (
    ANON_IDENTITY,
    ClientIdentity,
    RequestView,
    derive_client_identity,
    sanitize_cookie_token,
)

logger = logging.getLogger(__name__)

IDENTITY_MODES = ("cookie", "ip", "both")
COOKIE_SCOPE = "cookie"
IP_SCOPE = "ip"


class CookieSetter(Protocol):
    """Anything that can set a response cookie (Starlette ``Response``)."""

    def set_cookie(self, key: str, value: str = "", **kwargs: Any) -> Any: ...


@dataclass(frozen=True)
class UsageCharge:
    """Result of recording one use.

    Attributes:
        count: Highest counter among the charged keys after the increment.
        persisted: False if the updated table could not be written.
        keys: The identity keys that were incremented.
    """

    count: int
    persisted: bool
    keys: tuple[str, ...]


def build_usage_key(scope: str, identity: str, day: str) -> str:
    return f"{scope}:{identity}_{day}"


def key_day(key: str) -> str:
    """Date suffix of a usage key (identities may contain underscores)."""
    return key.rsplit("_", 1)[-1]


class UsageLedger:
    """Daily quota accounting over an injected usage store."""

    def __init__(
        self,
        store: AbstractUsageStore,
        *,
        daily_limit: int = 3,
        identity_mode: str = "both",
        timezone: str = "Asia/Ho_Chi_Minh",
        cookie_name: str = "tv_user",
        cookie_max_age_days: int = 30,
        cookie_secure: bool = False,
        real_ip_header: str = "x-real-ip",
        forwarded_for_header: str = "x-forwarded-for",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Persisted counter table.
            daily_limit: Successful generations allowed per identity per day.
            identity_mode: ``cookie``, ``ip`` or ``both``.
            timezone: IANA name of the timezone defining day boundaries.
            cookie_name: Visitor identity cookie name.
            cookie_max_age_days: Lifetime of newly issued identity cookies.
            cookie_secure: Whether identity cookies carry the Secure flag.
            real_ip_header: Trusted single-address proxy header.
            forwarded_for_header: Proxy chain header.
            clock: Returns the current time; defaults to ``datetime.now``.

        Raises:
            ValueError: If daily_limit or identity_mode are invalid.
        """
        if daily_limit < 1:
            raise ValueError("daily_limit must be >= 1")
        if identity_mode not in IDENTITY_MODES:
            raise ValueError(f"identity_mode must be one of {', '.join(IDENTITY_MODES)}")

        self._store = store
        self._daily_limit = daily_limit
        self._identity_mode = identity_mode
        self._tz = ZoneInfo(timezone)
        self._cookie_name = cookie_name
        self._cookie_max_age = cookie_max_age_days * 24 * 60 * 60
        self._cookie_secure = cookie_secure
        self._real_ip_header = real_ip_header
        self._forwarded_for_header = forwarded_for_header
        self._clock = clock or (lambda: datetime.now(self._tz))

    @property
    def daily_limit(self) -> int:
        return self._daily_limit

    @property
    def identity_mode(self) -> str:
        return self._identity_mode

    @property
    def cookie_name(self) -> str:
        return self._cookie_name

    def today(self) -> str:
        """Current day in the reference timezone as ``YYYYMMDD``."""
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(self._tz)
        return now.strftime("%Y%m%d")

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def identity(self, request: RequestView) -> ClientIdentity:
        return derive_client_identity(
            request,
            cookie_name=self._cookie_name,
            real_ip_header=self._real_ip_header,
            forwarded_for_header=self._forwarded_for_header,
        )

    def _keys_for(self, request: RequestView, day: str) -> list[str]:
        identity = self.identity(request)
        keys: list[str] = []

        if self._identity_mode in ("cookie", "both") and identity.cookie:
            keys.append(build_usage_key(COOKIE_SCOPE, identity.cookie, day))
        if self._identity_mode in ("ip", "both") and identity.ip:
            keys.append(build_usage_key(IP_SCOPE, identity.ip, day))

        if not keys:
            scope = COOKIE_SCOPE if self._identity_mode == "cookie" else IP_SCOPE
            keys.append(build_usage_key(scope, ANON_IDENTITY, day))
        return keys

    def resolve_identity_keys(self, request: RequestView) -> list[str]:
        """Today's identity keys for the request; never empty."""
        return self._keys_for(request, self.today())

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    @staticmethod
    def _prune(table: UsageTable, day: str) -> int:
        stale = [key for key in table if key_day(key) != day]
        for key in stale:
            del table[key]
        return len(stale)

    def _load(self, day: str) -> UsageTable:
        table = self._store.read()
        stale = [key for key in table if key_day(key) != day]
        if not stale:
            return table

        txn = self._store.transact(lambda t: self._prune(t, day))
        logger.info(
            "usage.pruned",
            extra={"day": day, "removed": txn.result, "persisted": txn.persisted},
        )
        for key in stale:
            table.pop(key, None)
        return table

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def current_count(self, request: RequestView) -> int:
        """Highest of today's counters among the request's identity keys."""
        day = self.today()
        keys = self._keys_for(request, day)
        try:
            table = self._load(day)
        except Exception:
            logger.exception("usage.load_failed", extra={"day": day})
            return 0
        return max(table.get(key, 0) for key in keys)

    def remaining_for(self, count: int) -> int:
        return max(0, self._daily_limit - count)

    def is_allowed(self, request: RequestView) -> bool:
        return self.current_count(request) < self._daily_limit

    def remaining(self, request: RequestView) -> int:
        return self.remaining_for(self.current_count(request))

    def record_use_result(self, request: RequestView) -> UsageCharge:
        """Increment every identity key of the request by exactly one."""
        day = self.today()
        keys = self._keys_for(request, day)

        def _increment(table: UsageTable) -> int:
            self._prune(table, day)
            for key in keys:
                table[key] = table.get(key, 0) + 1
            return max(table[key] for key in keys)

        try:
            txn = self._store.transact(_increment)
        except Exception:
            logger.exception("usage.record_failed", extra={"day": day, "keys": len(keys)})
            return UsageCharge(count=0, persisted=False, keys=tuple(keys))

        log = logger.info if txn.persisted else logger.warning
        log(
            "usage.recorded",
            extra={
                "key_hashes": [hash_identifier(key) for key in keys],
                "count": txn.result,
                "limit": self._daily_limit,
                "persisted": txn.persisted,
            },
        )
        return UsageCharge(count=txn.result, persisted=txn.persisted, keys=tuple(keys))

    def record_use(self, request: RequestView) -> int:
        return self.record_use_result(request).count

    # ------------------------------------------------------------------
    # Cookie
    # ------------------------------------------------------------------

    def ensure_identity_cookie(self, request: RequestView, response: CookieSetter) -> str:
        """Issue the visitor identity cookie if the request has none.

        The new token is written back into ``request.cookies`` so later
        ledger calls in the same request are charged to it. A second call
        for the same request is a no-op.

        Returns:
            The visitor token in effect for this request.
        """
        existing = sanitize_cookie_token(request.cookies.get(self._cookie_name))
        if existing:
            return existing

        token = secrets.token_hex(10)
        self.set_identity_cookie(response, token)
        request.cookies[self._cookie_name] = token
        logger.info("usage.identity_issued", extra={"token_hash": hash_identifier(token)})
        return token

    def set_identity_cookie(self, response: CookieSetter, token: str) -> None:
        response.set_cookie(
            key=self._cookie_name,
            value=token,
            max_age=self._cookie_max_age,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure,
        )
