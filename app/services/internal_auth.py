from __future__ import annotations

import ipaddress
import secrets
from functools import lru_cache

import structlog
from fastapi import HTTPException, Request

INTERNAL_TOKEN_HEADER = "X-Internal-Token"

IpNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

logger = structlog.get_logger(__name__)


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token, received_token)


def _as_network(entry: str) -> IpNetwork | None:
    try:
        if "/" in entry:
            return ipaddress.ip_network(entry, strict=False)
        host = ipaddress.ip_address(entry)
        return ipaddress.ip_network(f"{host}/{host.max_prefixlen}", strict=False)
    except ValueError:
        return None


@lru_cache(maxsize=32)
def parse_allowlist(allowlist: str) -> tuple[IpNetwork, ...]:
    entries = (raw.strip() for raw in allowlist.split(","))
    networks = (_as_network(entry) for entry in entries if entry)
    return tuple(network for network in networks if network is not None)


def _normalize_ip(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    normalized = _normalize_ip(client_ip)
    if normalized is None:
        return False
    address = ipaddress.ip_address(normalized)
    return any(address in network for network in parse_allowlist(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    """Resolve the caller address, honouring X-Forwarded-For only behind a trusted proxy."""
    peer_ip = _normalize_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if not forwarded_for or not is_client_ip_allowed(client_ip=peer_ip, allowlist=trusted_proxies):
        return peer_ip
    return _normalize_ip(forwarded_for.split(",", maxsplit=1)[0])


def assert_internal_access(
    request: Request,
    *,
    expected_token: str,
    allowlist: str,
    trusted_proxies: str = "",
    scope: str,
) -> None:
    client_ip = extract_client_ip(request, trusted_proxies=trusted_proxies)

    if not is_valid_internal_token(
        expected_token=expected_token,
        received_token=request.headers.get(INTERNAL_TOKEN_HEADER),
    ):
        logger.warning("internal_auth_failed", scope=scope, reason="invalid_token", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})

    if not is_client_ip_allowed(client_ip=client_ip, allowlist=allowlist):
        logger.warning("internal_auth_failed", scope=scope, reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
