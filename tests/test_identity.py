"""Tests for caller identity resolution."""

from slidegate.identity import UNKNOWN_IDENTITY, resolve_identity


def test_first_forwarded_for_entry_wins() -> None:
    headers = {"x-forwarded-for": " 1.2.3.4 , 10.0.0.1", "x-real-ip": "5.6.7.8"}
    assert resolve_identity(headers, "127.0.0.1") == "1.2.3.4"


def test_real_ip_used_without_forwarded_for() -> None:
    assert resolve_identity({"x-real-ip": "5.6.7.8"}, "127.0.0.1") == "5.6.7.8"


def test_blank_forwarded_for_falls_through() -> None:
    assert resolve_identity({"x-forwarded-for": " , "}, "127.0.0.1") == "127.0.0.1"


def test_direct_address_fallback() -> None:
    assert resolve_identity({}, "9.9.9.9") == "9.9.9.9"


def test_unknown_sentinel() -> None:
    assert resolve_identity({}, None) == UNKNOWN_IDENTITY
