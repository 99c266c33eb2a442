from __future__ import annotations

from types import SimpleNamespace

from fastapi.testclient import TestClient

from app.api.routes import internal_tokens
from app.economy.tokens.errors import TokenIdempotencyConflictError
from app.main import app
from tests.helpers import DummySessionLocal

PURCHASE_PAYLOAD = {
    "user_id": 9,
    "package_code": "PACK_25",
    "idempotency_key": "payment:abc-123",
}


def _settings(allowlist: str = "127.0.0.1/32") -> SimpleNamespace:
    return SimpleNamespace(
        internal_api_token="internal-secret",
        internal_api_allowlist=allowlist,
        internal_api_trusted_proxies="",
    )


def test_internal_purchase_rejects_missing_token(monkeypatch) -> None:
    monkeypatch.setattr(internal_tokens, "get_settings", _settings)

    client = TestClient(app)
    response = client.post("/internal/tokens/purchases", json=PURCHASE_PAYLOAD)

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_audit_rejects_disallowed_ip(monkeypatch) -> None:
    monkeypatch.setattr(internal_tokens, "get_settings", lambda: _settings("192.168.0.0/16"))

    client = TestClient(app)
    response = client.get(
        "/internal/tokens/9/audit",
        headers={
            "X-Internal-Token": "internal-secret",
            "X-Forwarded-For": "10.0.0.25",
        },
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_purchase_rejects_unknown_package(monkeypatch) -> None:
    monkeypatch.setattr(internal_tokens, "_assert_internal_access", lambda request: None)

    client = TestClient(app)
    response = client.post(
        "/internal/tokens/purchases",
        json={**PURCHASE_PAYLOAD, "package_code": "PACK_7"},
    )

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_TOKEN_PACKAGE_NOT_FOUND"}}


def test_internal_purchase_rejects_custom_package_without_quantity(monkeypatch) -> None:
    monkeypatch.setattr(internal_tokens, "_assert_internal_access", lambda request: None)

    client = TestClient(app)
    response = client.post(
        "/internal/tokens/purchases",
        json={**PURCHASE_PAYLOAD, "package_code": "CUSTOM"},
    )

    assert response.status_code == 422
    assert response.json() == {"detail": {"code": "E_TOKEN_PACKAGE_QUANTITY"}}


def test_internal_purchase_rejects_amount_that_disagrees_with_package(monkeypatch) -> None:
    monkeypatch.setattr(internal_tokens, "_assert_internal_access", lambda request: None)

    client = TestClient(app)
    response = client.post(
        "/internal/tokens/purchases",
        json={**PURCHASE_PAYLOAD, "amount": 30},
    )

    assert response.status_code == 422
    assert response.json() == {"detail": {"code": "E_PACKAGE_AMOUNT_MISMATCH"}}


def test_internal_purchase_with_key_owned_by_another_account_is_conflict(monkeypatch) -> None:
    async def _fake_assert_token_account(session, *, user_id: int) -> None:
        return None

    async def _key_taken(session, **kwargs):
        raise TokenIdempotencyConflictError

    monkeypatch.setattr(internal_tokens, "_assert_internal_access", lambda request: None)
    monkeypatch.setattr(internal_tokens, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(internal_tokens, "_assert_token_account", _fake_assert_token_account)
    monkeypatch.setattr(internal_tokens.TokenLedgerService, "purchase_tokens", _key_taken)

    client = TestClient(app)
    response = client.post("/internal/tokens/purchases", json=PURCHASE_PAYLOAD)

    assert response.status_code == 409
    assert response.json() == {"detail": {"code": "E_IDEMPOTENCY_CONFLICT"}}
