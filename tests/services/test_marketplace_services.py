from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID

import pytest

from app.api.routes.entitlement_responses import DENIAL_STATUS_CODES
from app.economy.entitlements import gate
from app.economy.entitlements.rules import decide_subscription_quota, decide_token_balance
from app.economy.entitlements.types import AccountContext, DenialReason
from app.economy.quotas.types import GuardedAction, SubscriptionPlan
from app.economy.settlement import service as settlement_service
from app.economy.settlement.types import SettlementOutcome, SettlementStatus
from app.economy.tokens.errors import InsufficientTokenBalanceError
from app.economy.tokens.rules import contact_token_cost, mission_token_cost
from app.economy.tokens.types import TokenAppendResult
from app.marketplace import conversations, missions
from app.marketplace import settlement as marketplace_settlement
from app.marketplace.errors import ParticipantNotFoundError, SelfConversationError
from app.marketplace.types import MissionDraft
from tests.helpers import DummySession, DummySessionLocal

UTC = timezone.utc
NOW_UTC = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
INDIVIDUAL = AccountContext(user_id=9, role="INDIVIDUAL")
COMPANY = AccountContext(user_id=7, role="COMPANY", subscription_plan="BASIC")
DRAFT = MissionDraft(title="Paint a fence", description="Two coats", city="Rabat", featured_listing=True)


def _patch_gate(monkeypatch, module, decision) -> None:
    async def _fake_evaluate(session, **kwargs):
        return decision

    monkeypatch.setattr(module.EntitlementGate, "evaluate", _fake_evaluate)


@pytest.mark.asyncio
async def test_denied_mission_is_not_written_and_denial_is_recorded(monkeypatch) -> None:
    decision = decide_token_balance(
        action=GuardedAction.MISSION_CREATE,
        cost=mission_token_cost(featured_listing=True),
        balance=12,
    )
    denials: list[dict[str, object]] = []

    async def _fake_record_denial(session, **kwargs) -> None:
        denials.append(kwargs)

    async def _unexpected(*args, **kwargs):
        raise AssertionError("denied missions must not be written or settled")

    monkeypatch.setattr(missions, "SessionLocal", DummySessionLocal())
    _patch_gate(monkeypatch, missions, decision)
    monkeypatch.setattr(missions, "record_denial", _fake_record_denial)
    monkeypatch.setattr(missions.MissionsRepo, "create", _unexpected)
    monkeypatch.setattr(missions, "settle_guarded_action", _unexpected)

    result = await missions.MissionService.create_mission(account=INDIVIDUAL, draft=DRAFT, now_utc=NOW_UTC)

    assert result.created is False
    assert result.decision is decision
    assert denials == [{"user_id": 9, "decision": decision, "now_utc": NOW_UTC}]


@pytest.mark.asyncio
async def test_token_mission_is_written_then_settled(monkeypatch) -> None:
    decision = decide_token_balance(
        action=GuardedAction.MISSION_CREATE,
        cost=mission_token_cost(featured_listing=True),
        balance=37,
    )
    settled_outcome = SettlementOutcome(
        status=SettlementStatus.SETTLED,
        amount=15,
        transaction_id=3,
        balance_before=37,
        balance_after=22,
    )
    captured: dict[str, object] = {}

    async def _fake_create(session, *, mission):
        captured["mission"] = mission
        captured["write_session"] = session
        return mission

    async def _fake_settle(session, **kwargs) -> SettlementOutcome:
        captured["settle"] = kwargs
        captured["settle_session"] = session
        return settled_outcome

    monkeypatch.setattr(missions, "SessionLocal", DummySessionLocal())
    _patch_gate(monkeypatch, missions, decision)
    monkeypatch.setattr(missions.MissionsRepo, "create", _fake_create)
    monkeypatch.setattr(missions, "settle_guarded_action", _fake_settle)

    result = await missions.MissionService.create_mission(account=INDIVIDUAL, draft=DRAFT, now_utc=NOW_UTC)

    mission = captured["mission"]
    assert result.created is True
    assert result.settlement is settled_outcome
    assert mission.token_cost == 15
    assert mission.featured_listing is True
    assert mission.status == "PUBLISHED"
    assert captured["settle"]["record_id"] == mission.id
    assert captured["settle"]["action"] == GuardedAction.MISSION_CREATE
    assert captured["settle_session"] is captured["write_session"]


@pytest.mark.asyncio
async def test_company_mission_drops_featured_flag_and_cost(monkeypatch) -> None:
    decision = decide_subscription_quota(
        action=GuardedAction.MISSION_CREATE,
        plan=SubscriptionPlan.BASIC,
        used=0,
    )

    async def _fake_create(session, *, mission):
        return mission

    async def _fake_settle(session, **kwargs) -> SettlementOutcome:
        return SettlementOutcome(status=SettlementStatus.NOT_REQUIRED)

    monkeypatch.setattr(missions, "SessionLocal", DummySessionLocal())
    _patch_gate(monkeypatch, missions, decision)
    monkeypatch.setattr(missions.MissionsRepo, "create", _fake_create)
    monkeypatch.setattr(missions, "settle_guarded_action", _fake_settle)

    result = await missions.MissionService.create_mission(account=COMPANY, draft=DRAFT, now_utc=NOW_UTC)

    assert result.mission is not None
    assert result.mission.token_cost is None
    assert result.mission.featured_listing is False
    assert result.settlement.status == SettlementStatus.NOT_REQUIRED


@pytest.mark.asyncio
async def test_self_conversation_is_rejected() -> None:
    with pytest.raises(SelfConversationError):
        await conversations.ConversationService.start_conversation(
            account=COMPANY,
            participant_user_id=COMPANY.user_id,
            mission_id=None,
            now_utc=NOW_UTC,
        )


@pytest.mark.asyncio
async def test_unknown_participant_is_rejected(monkeypatch) -> None:
    async def _fake_get_by_id(session, user_id: int):
        return None

    monkeypatch.setattr(conversations, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(conversations.UsersRepo, "get_by_id", _fake_get_by_id)

    with pytest.raises(ParticipantNotFoundError):
        await conversations.ConversationService.start_conversation(
            account=COMPANY,
            participant_user_id=404,
            mission_id=None,
            now_utc=NOW_UTC,
        )


@pytest.mark.asyncio
async def test_existing_conversation_is_reused_without_gating(monkeypatch) -> None:
    existing = SimpleNamespace(id=UUID("0d9c3b7a-5f1e-4c2d-8a6b-1e2f3a4b5c6d"))

    async def _fake_get_by_id(session, user_id: int):
        return SimpleNamespace(id=user_id)

    async def _fake_get_between(session, **kwargs):
        return existing

    async def _unexpected(*args, **kwargs):
        raise AssertionError("reused conversations are not gated")

    monkeypatch.setattr(conversations, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(conversations.UsersRepo, "get_by_id", _fake_get_by_id)
    monkeypatch.setattr(conversations.ConversationsRepo, "get_between", _fake_get_between)
    monkeypatch.setattr(conversations.EntitlementGate, "evaluate", _unexpected)

    result = await conversations.ConversationService.start_conversation(
        account=INDIVIDUAL,
        participant_user_id=7,
        mission_id=None,
        now_utc=NOW_UTC,
    )

    assert result.conversation is existing
    assert result.created is False
    assert result.denied is False


@pytest.mark.asyncio
async def test_new_conversation_is_gated_and_settled(monkeypatch) -> None:
    decision = decide_token_balance(
        action=GuardedAction.CONTACT_CREATE,
        cost=contact_token_cost(),
        balance=3,
    )
    captured: dict[str, object] = {}

    async def _fake_get_by_id(session, user_id: int):
        return SimpleNamespace(id=user_id)

    async def _fake_get_between(session, **kwargs):
        return None

    async def _fake_create(session, *, conversation):
        return conversation

    async def _fake_settle(session, **kwargs) -> SettlementOutcome:
        captured.update(kwargs)
        return SettlementOutcome(status=SettlementStatus.SETTLED, amount=1)

    monkeypatch.setattr(conversations, "SessionLocal", DummySessionLocal())
    monkeypatch.setattr(conversations.UsersRepo, "get_by_id", _fake_get_by_id)
    monkeypatch.setattr(conversations.ConversationsRepo, "get_between", _fake_get_between)
    monkeypatch.setattr(conversations.ConversationsRepo, "create", _fake_create)
    _patch_gate(monkeypatch, conversations, decision)
    monkeypatch.setattr(conversations, "settle_guarded_action", _fake_settle)

    result = await conversations.ConversationService.start_conversation(
        account=INDIVIDUAL,
        participant_user_id=7,
        mission_id=None,
        now_utc=NOW_UTC,
    )

    assert result.created is True
    assert result.conversation.initiated_by_user_id == 9
    assert result.conversation.participant_user_id == 7
    assert captured["action"] == GuardedAction.CONTACT_CREATE
    assert captured["record_id"] == result.conversation.id


@pytest.mark.asyncio
async def test_settlement_failure_is_advisory(monkeypatch) -> None:
    decision = decide_token_balance(
        action=GuardedAction.MISSION_CREATE,
        cost=mission_token_cost(featured_listing=False),
        balance=10,
    )
    session = DummySession()
    failures: list[dict[str, object]] = []

    async def _failing_settle(session, **kwargs):
        raise InsufficientTokenBalanceError(required=10, available=4)

    async def _fake_record_failure(session, **kwargs) -> SettlementOutcome:
        failures.append(kwargs)
        return marketplace_settlement.SettlementService.failed_outcome(kwargs["decision"])

    monkeypatch.setattr(marketplace_settlement.SettlementService, "settle", _failing_settle)
    monkeypatch.setattr(marketplace_settlement.SettlementService, "record_failure", _fake_record_failure)

    outcome = await marketplace_settlement.settle_guarded_action(
        session,
        user_id=9,
        decision=decision,
        action=GuardedAction.MISSION_CREATE,
        record_id=UUID("8f2c1f4e-3d8a-4a1a-9d7e-2b8c5d6e7f10"),
        now_utc=NOW_UTC,
    )

    assert outcome.status == SettlementStatus.FAILED
    assert outcome.amount == 10
    assert outcome.warning == "token_settlement_failed"
    assert failures[0]["error"] == "InsufficientTokenBalanceError"
    assert session.savepoints == 1
    assert session.savepoint_rollbacks == 1


class _LedgerRow:
    def __init__(self, balance: int) -> None:
        self.balance = balance
        self.lock = asyncio.Lock()


class _LockingSession(DummySession):
    """Holds the ledger row lock from ``FOR UPDATE`` until its transaction ends."""

    def __init__(self, row: _LedgerRow) -> None:
        super().__init__()
        self.row = row
        self.holds_lock = False

    async def lock_row(self) -> None:
        if not self.holds_lock:
            await self.row.lock.acquire()
            self.holds_lock = True

    def end_transaction(self) -> None:
        if self.holds_lock:
            self.row.lock.release()
            self.holds_lock = False


class _LockingSessionBegin:
    def __init__(self, row: _LedgerRow) -> None:
        self._session = _LockingSession(row)

    async def __aenter__(self) -> _LockingSession:
        return self._session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._session.end_transaction()
        return False


class _LockingSessionLocal:
    def __init__(self, row: _LedgerRow) -> None:
        self.row = row

    def begin(self) -> _LockingSessionBegin:
        return _LockingSessionBegin(self.row)


@pytest.mark.asyncio
async def test_concurrent_featured_missions_cannot_both_spend_the_same_balance(monkeypatch) -> None:
    row = _LedgerRow(balance=15)
    denials: list[dict[str, object]] = []

    async def _locked_ledger(session, *, user_id: int, now_utc: datetime):
        await session.lock_row()
        return SimpleNamespace(user_id=user_id, balance=session.row.balance)

    async def _fake_create(session, *, mission):
        await asyncio.sleep(0)
        return mission

    async def _fake_debit(session, *, user_id: int, amount: int, **kwargs) -> TokenAppendResult:
        assert session.holds_lock
        before = session.row.balance
        if before < amount:
            raise InsufficientTokenBalanceError(required=amount, available=before)
        session.row.balance = before - amount
        return TokenAppendResult(
            transaction_id=1,
            user_id=user_id,
            kind="USED",
            amount=amount,
            balance_before=before,
            balance_after=session.row.balance,
            idempotent_replay=False,
        )

    async def _fake_record_denial(session, **kwargs) -> None:
        denials.append(kwargs)

    async def _ignore_event(session, **kwargs) -> None:
        return None

    monkeypatch.setattr(missions, "SessionLocal", _LockingSessionLocal(row))
    monkeypatch.setattr(gate.TokenLedgersRepo, "get_or_create_for_update", _locked_ledger)
    monkeypatch.setattr(missions.MissionsRepo, "create", _fake_create)
    monkeypatch.setattr(missions, "record_denial", _fake_record_denial)
    monkeypatch.setattr(settlement_service.TokenLedgerService, "debit_tokens", _fake_debit)
    monkeypatch.setattr(settlement_service, "emit_notification_event", _ignore_event)
    monkeypatch.setattr(
        settlement_service,
        "get_settings",
        lambda: SimpleNamespace(token_low_balance_threshold=10),
    )

    results = await asyncio.gather(
        missions.MissionService.create_mission(account=INDIVIDUAL, draft=DRAFT, now_utc=NOW_UTC),
        missions.MissionService.create_mission(account=INDIVIDUAL, draft=DRAFT, now_utc=NOW_UTC),
    )

    created = [result for result in results if result.created]
    denied = [result for result in results if not result.created]
    assert len(created) == 1
    assert len(denied) == 1
    assert created[0].settlement.status == SettlementStatus.SETTLED
    assert created[0].settlement.balance_after == 0
    denial = denied[0].decision
    assert denial.reason == DenialReason.INSUFFICIENT_TOKENS
    assert denial.details["available"] == 0
    assert DENIAL_STATUS_CODES[denial.reason] == 402
    assert len(denials) == 1
    assert row.balance == 0
    assert not row.lock.locked()
