"""Unit tests for visitor identity derivation."""

from __future__ import annotations

import pytest

from app.services.identity import (
    ClientIdentity,
    RequestView,
    derive_client_identity,
    is_private_ip,
    normalize_ip,
    resolve_client_ip,
    sanitize_cookie_token,
)


def test_request_view_header_lookup_is_case_insensitive() -> None:
    view = RequestView(headers={"X-Real-IP": "8.8.8.8"})

    assert view.header("x-real-ip") == "8.8.8.8"
    assert view.header("X-REAL-IP") == "8.8.8.8"
    assert view.header("x-forwarded-for") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("abc123DEF", "abc123DEF"),
        ("a1b2-c3_d4", "a1b2-c3_d4"),
        ("abc;drop table", "abcdroptable"),
        ("../../etc", "etc"),
        ("", ""),
        (None, ""),
    ],
)
def test_sanitize_cookie_token(raw, expected) -> None:
    assert sanitize_cookie_token(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("203.0.113.9", "203.0.113.9"),
        ("  203.0.113.9  ", "203.0.113.9"),
        ("::ffff:192.168.1.5", "192.168.1.5"),
        ("::FFFF:8.8.8.8", "8.8.8.8"),
        ("[2001:db8::1]", "2001:db8::1"),
        ("1.2.3.4<script>", "1.2.3.4script"),
        ("", "anon"),
        ("   ", "anon"),
        ("<>/", "anon"),
        (None, "anon"),
    ],
)
def test_normalize_ip(raw, expected) -> None:
    assert normalize_ip(raw) == expected


@pytest.mark.parametrize(
    "ip",
    [
        "127.0.0.1",
        "127.8.9.10",
        "10.0.0.5",
        "172.16.0.1",
        "172.31.255.255",
        "192.168.1.1",
        "169.254.10.10",
        "::1",
        "fe80::1",
        "localhost",
        "anon",
        "",
        "1.2.3",
        "300.1.1.1",
        "not-an-ip",
    ],
)
def test_private_or_unusable_addresses(ip: str) -> None:
    assert is_private_ip(ip) is True


@pytest.mark.parametrize(
    "ip",
    ["8.8.8.8", "203.0.113.9", "198.51.100.1", "172.32.0.1", "2001:4860:4860::8888"],
)
def test_public_addresses(ip: str) -> None:
    assert is_private_ip(ip) is False


class TestResolveClientIp:
    def test_real_ip_header_wins(self) -> None:
        view = RequestView(
            headers={"x-real-ip": "198.51.100.7", "x-forwarded-for": "203.0.113.9"},
            remote_address="10.0.0.1",
        )
        assert resolve_client_ip(view) == "198.51.100.7"

    def test_forwarded_for_skips_private_hops(self) -> None:
        view = RequestView(headers={"x-forwarded-for": "10.0.0.5, 203.0.113.9"})
        assert resolve_client_ip(view) == "203.0.113.9"

    def test_forwarded_for_all_private_uses_first(self) -> None:
        view = RequestView(headers={"x-forwarded-for": "192.168.0.2, 10.0.0.5"})
        assert resolve_client_ip(view) == "192.168.0.2"

    def test_blank_real_ip_falls_through(self) -> None:
        view = RequestView(
            headers={"x-real-ip": "  ", "x-forwarded-for": "8.8.4.4"},
            remote_address="127.0.0.1",
        )
        assert resolve_client_ip(view) == "8.8.4.4"

    def test_peer_address_fallback(self) -> None:
        view = RequestView(remote_address="::ffff:127.0.0.1")
        assert resolve_client_ip(view) == "127.0.0.1"

    def test_nothing_available(self) -> None:
        assert resolve_client_ip(RequestView()) is None

    def test_custom_header_names(self) -> None:
        view = RequestView(headers={"cf-connecting-ip": "203.0.113.50"})
        assert resolve_client_ip(view, real_ip_header="CF-Connecting-IP") == "203.0.113.50"


def test_derive_client_identity_combines_cookie_and_ip() -> None:
    view = RequestView(
        cookies={"tv_user": "tok!en123"},
        headers={"x-forwarded-for": "10.0.0.5, 203.0.113.9"},
    )

    assert derive_client_identity(view) == ClientIdentity(cookie="token123", ip="203.0.113.9")


def test_derive_client_identity_with_garbage_cookie() -> None:
    view = RequestView(cookies={"tv_user": "!!!"}, remote_address="198.51.100.1")

    identity = derive_client_identity(view)

    assert identity.cookie is None
    assert identity.ip == "198.51.100.1"
