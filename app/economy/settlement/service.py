from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.notification_events import (
    EVENT_SETTLEMENT_FAILED,
    EVENT_TOKEN_BALANCE_LOW,
    emit_notification_event,
)
from app.economy.entitlements.types import EntitlementDecision, EntitlementPolicy
from app.economy.quotas.types import GuardedAction
from app.economy.settlement.types import SettlementOutcome, SettlementStatus
from app.economy.tokens.service import TokenLedgerService

logger = structlog.get_logger(__name__)

SETTLEMENT_REASONS: dict[GuardedAction, str] = {
    GuardedAction.MISSION_CREATE: "mission_publication",
    GuardedAction.CONTACT_CREATE: "contact_unlock",
}

SETTLEMENT_FAILED_WARNING = "token_settlement_failed"


def settlement_idempotency_key(action: GuardedAction, record_id: UUID) -> str:
    return f"settle:{action.value.lower()}:{record_id}"


class SettlementService:
    @staticmethod
    async def settle(
        session: AsyncSession,
        *,
        user_id: int,
        decision: EntitlementDecision,
        action: GuardedAction,
        record_id: UUID,
        now_utc: datetime,
    ) -> SettlementOutcome:
        """Apply the accounting consequence of an action that already persisted.

        Quota-policy actions need no write: the next usage count re-derives them
        from the action records. Balance-policy actions append one ``USED``
        transaction keyed by the record id so a retried settlement cannot debit
        twice. Errors propagate; callers decide how to degrade.
        """
        if not decision.allowed:
            raise ValueError("cannot settle a denied entitlement decision")

        if decision.policy == EntitlementPolicy.SUBSCRIPTION_QUOTA:
            return SettlementOutcome(status=SettlementStatus.NOT_REQUIRED)

        amount = decision.required_tokens
        result = await TokenLedgerService.debit_tokens(
            session,
            user_id=user_id,
            amount=amount,
            now_utc=now_utc,
            reason=SETTLEMENT_REASONS[action],
            idempotency_key=settlement_idempotency_key(action, record_id),
            mission_id=record_id if action == GuardedAction.MISSION_CREATE else None,
            conversation_id=record_id if action == GuardedAction.CONTACT_CREATE else None,
            metadata={"breakdown": decision.details.get("breakdown", {})},
        )

        threshold = get_settings().token_low_balance_threshold
        if not result.idempotent_replay and result.balance_after < threshold:
            await emit_notification_event(
                session,
                event_type=EVENT_TOKEN_BALANCE_LOW,
                user_id=user_id,
                payload={
                    "balance": result.balance_after,
                    "threshold": threshold,
                    "action": action.value,
                },
                happened_at=now_utc,
            )

        return SettlementOutcome(
            status=SettlementStatus.SETTLED,
            amount=result.amount,
            transaction_id=result.transaction_id,
            balance_before=result.balance_before,
            balance_after=result.balance_after,
            idempotent_replay=result.idempotent_replay,
        )

    @staticmethod
    async def record_failure(
        session: AsyncSession,
        *,
        user_id: int,
        decision: EntitlementDecision,
        action: GuardedAction,
        record_id: UUID,
        error: str,
        now_utc: datetime,
    ) -> SettlementOutcome:
        await emit_notification_event(
            session,
            event_type=EVENT_SETTLEMENT_FAILED,
            user_id=user_id,
            payload={
                "action": action.value,
                "record_id": str(record_id),
                "required": decision.required_tokens,
                "error": error,
            },
            happened_at=now_utc,
        )
        return SettlementService.failed_outcome(decision)

    @staticmethod
    def failed_outcome(decision: EntitlementDecision) -> SettlementOutcome:
        return SettlementOutcome(
            status=SettlementStatus.FAILED,
            amount=decision.required_tokens,
            warning=SETTLEMENT_FAILED_WARNING,
        )
