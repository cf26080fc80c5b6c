"""Visitor identity derivation from untrusted request data.

Anonymous visitors are identified two ways: by a random token kept in a
first-party cookie, and by their network address as reported by the proxy
chain. Both inputs are attacker controlled, so everything here normalizes
aggressively and never raises.

The functions are pure and operate on :class:`RequestView`, a narrow
``{cookies, headers, remote_address}`` view of an HTTP request, so they can
be unit tested without any web framework.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from typing import Mapping

ANON_IDENTITY = "anon"

_COOKIE_TOKEN_INVALID = re.compile(r"[^A-Za-z0-9_-]")
_IP_INVALID = re.compile(r"[^A-Za-z0-9_.:-]")
_MAPPED_IPV4_PREFIX = "::ffff:"

_LOOPBACK_NAMES = {"localhost", "::1"}
_PRIVATE_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("::1/128"),
)


@dataclass
class RequestView:
    """Framework-independent view of the request fields identity needs.

    Header names are lower-cased on construction so lookups are
    case-insensitive. ``cookies`` is mutable on purpose: a freshly issued
    identity cookie is written back so later steps of the same request see it.
    """

    cookies: dict[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    remote_address: str | None = None

    def __post_init__(self) -> None:
        self.headers = {str(k).lower(): str(v) for k, v in dict(self.headers).items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @classmethod
    def from_request(cls, request) -> "RequestView":
        """Build a view from a Starlette/FastAPI request."""
        client = getattr(request, "client", None)
        return cls(
            cookies=dict(request.cookies),
            headers=dict(request.headers),
            remote_address=client.host if client else None,
        )


@dataclass(frozen=True)
class ClientIdentity:
    """Candidate identities for one request; either may be missing."""

    cookie: str | None
    ip: str | None


def sanitize_cookie_token(value: str | None) -> str:
    """Strip every character outside ``[A-Za-z0-9_-]``."""
    if not value:
        return ""
    return _COOKIE_TOKEN_INVALID.sub("", value)


def normalize_ip(value: str | None) -> str:
    """Normalize a raw address string into a storage-safe identity token.

    Trims whitespace, unwraps IPv6-mapped IPv4 (``::ffff:1.2.3.4``), strips
    surrounding brackets and drops characters outside ``[A-Za-z0-9_.:-]``.
    An empty result becomes ``"anon"``.

    Examples:
        >>> normalize_ip(" ::ffff:203.0.113.9 ")
        '203.0.113.9'
        >>> normalize_ip("[2001:db8::1]")
        '2001:db8::1'
        >>> normalize_ip("")
        'anon'
    """
    if not value:
        return ANON_IDENTITY

    ip = value.strip()
    if ip.lower().startswith(_MAPPED_IPV4_PREFIX):
        ip = ip[len(_MAPPED_IPV4_PREFIX):]
    ip = ip.strip("[]")
    ip = _IP_INVALID.sub("", ip)
    return ip or ANON_IDENTITY


def is_private_ip(ip: str) -> bool:
    """Return True when ``ip`` is not usable as a public identity.

    Covers loopback, link-local and RFC1918 ranges, plus anything that does
    not parse as an address (malformed dotted quads, hostnames, ``anon``).
    """
    if not ip or ip == ANON_IDENTITY:
        return True

    lowered = ip.lower()
    if lowered in _LOOPBACK_NAMES:
        return True

    try:
        address = ipaddress.ip_address(lowered)
    except ValueError:
        # 1.2.3, 300.1.1.1 and other garbage all land here
        return True

    return any(
        address.version == network.version and address in network
        for network in _PRIVATE_NETWORKS
    )


def _usable(ip: str) -> bool:
    return bool(ip) and ip != ANON_IDENTITY


def resolve_client_ip(
    view: RequestView,
    *,
    real_ip_header: str = "x-real-ip",
    forwarded_for_header: str = "x-forwarded-for",
) -> str | None:
    """Resolve the client address through the proxy header priority list.

    1. The single trusted real-IP header.
    2. The forwarded-for chain: the first public address, else the first one.
    3. The transport peer address.

    Returns:
        Normalized address, or None when no source yields one.
    """
    real_ip = normalize_ip(view.header(real_ip_header))
    if _usable(real_ip):
        return real_ip

    forwarded = view.header(forwarded_for_header)
    if forwarded:
        candidates = [normalize_ip(part) for part in forwarded.split(",")]
        candidates = [ip for ip in candidates if _usable(ip)]
        for ip in candidates:
            if not is_private_ip(ip):
                return ip
        if candidates:
            return candidates[0]

    peer = normalize_ip(view.remote_address)
    if _usable(peer):
        return peer

    return None


def derive_client_identity(
    view: RequestView,
    *,
    cookie_name: str = "tv_user",
    real_ip_header: str = "x-real-ip",
    forwarded_for_header: str = "x-forwarded-for",
) -> ClientIdentity:
    """Compute the cookie and IP candidate identities for a request."""
    token = sanitize_cookie_token(view.cookies.get(cookie_name))
    ip = resolve_client_ip(
        view,
        real_ip_header=real_ip_header,
        forwarded_for_header=forwarded_for_header,
    )
    return ClientIdentity(cookie=token or None, ip=ip)
