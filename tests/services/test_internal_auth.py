from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.services.internal_auth import (
    assert_internal_access,
    extract_client_ip,
    is_client_ip_allowed,
    is_valid_internal_token,
)


def test_is_valid_internal_token_requires_exact_match() -> None:
    assert is_valid_internal_token(expected_token="secret", received_token="secret") is True
    assert is_valid_internal_token(expected_token="secret", received_token="wrong") is False
    assert is_valid_internal_token(expected_token="secret", received_token=None) is False
    assert is_valid_internal_token(expected_token="", received_token="") is False


def test_is_client_ip_allowed_supports_exact_ip_and_cidr() -> None:
    allowlist = "127.0.0.1,10.0.0.0/8"
    assert is_client_ip_allowed(client_ip="127.0.0.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="10.12.33.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="192.168.1.5", allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip="not-an-ip", allowlist=allowlist) is False


def test_is_client_ip_allowed_ignores_malformed_allowlist_entries() -> None:
    assert is_client_ip_allowed(client_ip="10.0.0.1", allowlist="bogus, 10.0.0.0/24") is True


def test_extract_client_ip_uses_forwarded_header_only_for_trusted_proxy() -> None:
    request = SimpleNamespace(
        headers={"X-Forwarded-For": "10.1.1.8, 127.0.0.1"},
        client=SimpleNamespace(host="127.0.0.1"),
    )
    assert extract_client_ip(request, trusted_proxies="127.0.0.1/32") == "10.1.1.8"
    assert extract_client_ip(request, trusted_proxies="") == "127.0.0.1"


def test_assert_internal_access_accepts_token_from_allowed_ip() -> None:
    request = SimpleNamespace(
        headers={"X-Internal-Token": "secret"},
        client=SimpleNamespace(host="10.0.0.4"),
    )

    assert_internal_access(
        request,
        expected_token="secret",
        allowlist="10.0.0.0/8",
        scope="internal_tokens",
    )


@pytest.mark.parametrize(
    ("headers", "host"),
    [
        ({}, "10.0.0.4"),
        ({"X-Internal-Token": "wrong"}, "10.0.0.4"),
        ({"X-Internal-Token": "secret"}, "192.168.1.4"),
    ],
)
def test_assert_internal_access_rejects_bad_token_or_ip(headers: dict[str, str], host: str) -> None:
    request = SimpleNamespace(headers=headers, client=SimpleNamespace(host=host))

    with pytest.raises(HTTPException) as exc_info:
        assert_internal_access(
            request,
            expected_token="secret",
            allowlist="10.0.0.0/8",
            scope="internal_tokens",
        )

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == {"code": "E_FORBIDDEN"}
