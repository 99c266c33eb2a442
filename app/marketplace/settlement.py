from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notification_events import EVENT_ENTITLEMENT_DENIED, emit_notification_event
from app.economy.entitlements.types import EntitlementDecision
from app.economy.quotas.types import GuardedAction
from app.economy.settlement.service import SettlementService
from app.economy.settlement.types import SettlementOutcome
from app.economy.tokens.errors import TokenLedgerError

logger = structlog.get_logger(__name__)


async def record_denial(
    session,
    *,
    user_id: int,
    decision: EntitlementDecision,
    now_utc: datetime,
) -> None:
    await emit_notification_event(
        session,
        event_type=EVENT_ENTITLEMENT_DENIED,
        user_id=user_id,
        payload={
            "action": decision.action,
            "policy": decision.policy.value,
            "reason": decision.reason.value if decision.reason is not None else None,
            "code": decision.code,
            "details": decision.details,
        },
        happened_at=now_utc,
    )


async def settle_guarded_action(
    session: AsyncSession,
    *,
    user_id: int,
    decision: EntitlementDecision,
    action: GuardedAction,
    record_id: UUID,
    now_utc: datetime,
) -> SettlementOutcome:
    """Settle inside the transaction that wrote the guarded record.

    The gate's ledger lock is still held, so the debit sees the balance the
    decision was made on. The debit runs in a savepoint: a failure rolls back
    only the savepoint and the record still commits. The failure is logged,
    reported to the notification outbox, and returned as a ``FAILED`` outcome
    carrying a warning.
    """
    try:
        async with session.begin_nested():
            return await SettlementService.settle(
                session,
                user_id=user_id,
                decision=decision,
                action=action,
                record_id=record_id,
                now_utc=now_utc,
            )
    except (TokenLedgerError, SQLAlchemyError) as exc:
        logger.exception(
            "token_settlement_failed",
            user_id=user_id,
            action=action.value,
            record_id=str(record_id),
            required=decision.required_tokens,
            error_type=type(exc).__name__,
        )
        error = type(exc).__name__

    return await SettlementService.record_failure(
        session,
        user_id=user_id,
        decision=decision,
        action=action,
        record_id=record_id,
        error=error,
        now_utc=now_utc,
    )
