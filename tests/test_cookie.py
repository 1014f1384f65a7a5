"""Tests for the cookie and header transport."""

from __future__ import annotations

from custom_api_auth.core.settings import Settings


def test_get_reads_request_cookies(transport_factory) -> None:
    transport = transport_factory(cookies={"a": "1"})
    assert transport.get("a") == "1"
    assert transport.get("missing") is None


def test_set_applies_security_flags(transport_factory, test_settings: Settings) -> None:
    transport = transport_factory()
    result = transport.set("name", "value", 4600)

    assert result.ok
    header = transport.response.headers["set-cookie"]
    assert header.startswith("name=value")
    assert "HttpOnly" in header
    assert "SameSite=strict" in header
    assert f"Path={test_settings.token_cookie_path}" in header
    assert "Secure" not in header


def test_set_marks_cookie_secure_when_https_only(test_settings: Settings, transport_factory) -> None:
    test_settings.token_over_https_only = True
    transport = transport_factory(scheme="https")
    transport.config = test_settings
    transport.set("name", "value", 4600)
    assert "Secure" in transport.response.headers["set-cookie"]


def test_remove_expires_cookie(transport_factory, set_cookies) -> None:
    transport = transport_factory(cookies={"name": "value"})
    assert transport.remove("name").ok
    assert set_cookies(transport.response.headers.getlist("set-cookie")) == {"name": ""}


def test_operations_fail_without_response(transport_factory) -> None:
    transport = transport_factory(with_response=False)
    assert not transport.set("name", "value", 4600).ok
    assert not transport.remove("name").ok
    assert not transport.set_header("X-Test", "1").ok


def test_header_round_trip(transport_factory) -> None:
    transport = transport_factory(headers={"X-Auth-Nonce": " abc "})
    assert transport.get_header("X-Auth-Nonce") == "abc"
    assert transport.set_header("X-Auth-Nonce", "def").ok
    assert transport.response.headers["X-Auth-Nonce"] == "def"


def test_is_secure(transport_factory) -> None:
    assert not transport_factory().is_secure()
    assert transport_factory(scheme="https").is_secure()
    assert transport_factory(headers={"X-Forwarded-Proto": "https"}).is_secure()
