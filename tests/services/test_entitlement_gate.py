from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.economy.entitlements import gate
from app.economy.entitlements.errors import EntitlementUnavailableError, RoleNotPermittedError
from app.economy.entitlements.types import (
    AccountContext,
    DenialReason,
    EntitlementPolicy,
)
from app.economy.quotas.types import GuardedAction

UTC = timezone.utc
NOW_UTC = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def _patch_usage(monkeypatch, used: int, captured: dict[str, object] | None = None) -> None:
    async def _fake_count_usage(session, *, user_id: int, action: GuardedAction, now_utc: datetime) -> int:
        if captured is not None:
            captured["user_id"] = user_id
            captured["action"] = action
        return used

    monkeypatch.setattr(gate.UsageService, "count_usage", _fake_count_usage)


def _patch_balance(monkeypatch, balance: int) -> None:
    async def _fake_locked_ledger(session, *, user_id: int, now_utc: datetime):
        return SimpleNamespace(user_id=user_id, balance=balance)

    monkeypatch.setattr(gate.TokenLedgersRepo, "get_or_create_for_update", _fake_locked_ledger)


@pytest.mark.asyncio
async def test_worker_is_rejected_before_any_lookup(monkeypatch) -> None:
    async def _unexpected(*args, **kwargs):
        raise AssertionError("no lookup expected for workers")

    monkeypatch.setattr(gate.UsageService, "count_usage", _unexpected)
    monkeypatch.setattr(gate.TokenLedgersRepo, "get_or_create_for_update", _unexpected)

    with pytest.raises(RoleNotPermittedError) as exc_info:
        await gate.EntitlementGate.evaluate(
            object(),
            account=AccountContext(user_id=1, role="WORKER"),
            action=GuardedAction.MISSION_CREATE,
            now_utc=NOW_UTC,
        )

    assert exc_info.value.role == "WORKER"
    assert exc_info.value.action == "MISSION_CREATE"


def test_unknown_role_is_not_permitted() -> None:
    with pytest.raises(RoleNotPermittedError):
        gate.EntitlementGate.assert_role_permitted(
            AccountContext(user_id=1, role="ADMIN"),
            GuardedAction.CONTACT_CREATE,
        )


@pytest.mark.asyncio
async def test_company_is_admitted_under_quota(monkeypatch) -> None:
    captured: dict[str, object] = {}
    _patch_usage(monkeypatch, used=2, captured=captured)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=7, role="COMPANY", subscription_plan="BASIC"),
        action=GuardedAction.MISSION_CREATE,
        now_utc=NOW_UTC,
    )

    assert decision.allowed is True
    assert decision.policy == EntitlementPolicy.SUBSCRIPTION_QUOTA
    assert decision.details["remaining"] == 1
    assert captured == {"user_id": 7, "action": GuardedAction.MISSION_CREATE}


@pytest.mark.asyncio
async def test_company_with_lapsed_subscription_needs_subscription(monkeypatch) -> None:
    async def _unexpected(*args, **kwargs):
        raise AssertionError("usage is not counted for unsubscribed accounts")

    monkeypatch.setattr(gate.UsageService, "count_usage", _unexpected)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(
            user_id=7,
            role="COMPANY",
            subscription_plan="PREMIUM",
            subscription_ends_at=NOW_UTC - timedelta(days=1),
        ),
        action=GuardedAction.CONTACT_CREATE,
        now_utc=NOW_UTC,
    )

    assert decision.allowed is False
    assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED


@pytest.mark.asyncio
async def test_company_with_future_dated_subscription_needs_subscription(monkeypatch) -> None:
    async def _unexpected(*args, **kwargs):
        raise AssertionError("usage is not counted before the plan starts")

    monkeypatch.setattr(gate.UsageService, "count_usage", _unexpected)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(
            user_id=7,
            role="COMPANY",
            subscription_plan="BASIC",
            subscription_starts_at=NOW_UTC + timedelta(days=2),
        ),
        action=GuardedAction.MISSION_CREATE,
        now_utc=NOW_UTC,
    )

    assert decision.allowed is False
    assert decision.reason == DenialReason.SUBSCRIPTION_REQUIRED


@pytest.mark.asyncio
async def test_company_at_quota_is_denied(monkeypatch) -> None:
    _patch_usage(monkeypatch, used=2)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=7, role="COMPANY", subscription_plan="BASIC"),
        action=GuardedAction.CONTACT_CREATE,
        now_utc=NOW_UTC,
    )

    assert decision.allowed is False
    assert decision.reason == DenialReason.QUOTA_EXCEEDED
    assert decision.details["limit"] == 2


@pytest.mark.asyncio
async def test_individual_is_checked_against_token_balance(monkeypatch) -> None:
    _patch_balance(monkeypatch, balance=12)

    denied = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=9, role="INDIVIDUAL"),
        action=GuardedAction.MISSION_CREATE,
        now_utc=NOW_UTC,
        featured_listing=True,
    )
    allowed = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=9, role="INDIVIDUAL"),
        action=GuardedAction.MISSION_CREATE,
        now_utc=NOW_UTC,
        featured_listing=False,
    )

    assert denied.allowed is False
    assert denied.reason == DenialReason.INSUFFICIENT_TOKENS
    assert denied.details["required"] == 15
    assert denied.details["available"] == 12
    assert allowed.allowed is True
    assert allowed.required_tokens == 10


@pytest.mark.asyncio
async def test_individual_subscription_plan_is_ignored(monkeypatch) -> None:
    _patch_balance(monkeypatch, balance=0)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=9, role="INDIVIDUAL", subscription_plan="PREMIUM"),
        action=GuardedAction.CONTACT_CREATE,
        now_utc=NOW_UTC,
    )

    assert decision.policy == EntitlementPolicy.TOKEN_BALANCE
    assert decision.reason == DenialReason.INSUFFICIENT_TOKENS


@pytest.mark.asyncio
async def test_balance_is_read_under_a_row_lock(monkeypatch) -> None:
    calls: list[str] = []

    async def _locked_ledger(session, *, user_id: int, now_utc: datetime):
        calls.append("for_update")
        return SimpleNamespace(user_id=user_id, balance=20)

    async def _unlocked_ledger(*args, **kwargs):
        raise AssertionError("admission must read the balance under the ledger row lock")

    monkeypatch.setattr(gate.TokenLedgersRepo, "get_or_create_for_update", _locked_ledger)
    monkeypatch.setattr(gate.TokenLedgersRepo, "get_or_create", _unlocked_ledger)

    decision = await gate.EntitlementGate.evaluate(
        object(),
        account=AccountContext(user_id=9, role="INDIVIDUAL"),
        action=GuardedAction.MISSION_CREATE,
        now_utc=NOW_UTC,
        featured_listing=True,
    )

    assert decision.allowed is True
    assert calls == ["for_update"]


@pytest.mark.asyncio
async def test_store_failure_during_evaluation_is_reported_as_unavailable(monkeypatch) -> None:
    async def _broken_count_usage(session, **kwargs) -> int:
        raise OperationalError("SELECT count(*)", {}, Exception("connection reset"))

    monkeypatch.setattr(gate.UsageService, "count_usage", _broken_count_usage)

    with pytest.raises(EntitlementUnavailableError) as exc_info:
        await gate.EntitlementGate.evaluate(
            object(),
            account=AccountContext(user_id=7, role="COMPANY", subscription_plan="BASIC"),
            action=GuardedAction.CONTACT_CREATE,
            now_utc=NOW_UTC,
        )

    assert exc_info.value.action == "CONTACT_CREATE"
    assert isinstance(exc_info.value.__cause__, OperationalError)
