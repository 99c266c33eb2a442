from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.outbox_events_repo import OutboxEventsRepo

EVENT_ENTITLEMENT_DENIED = "entitlement_denied"
EVENT_TOKEN_BALANCE_LOW = "token_balance_low"
EVENT_SETTLEMENT_FAILED = "settlement_failed"

OUTBOX_STATUS_PENDING = "PENDING"


async def emit_notification_event(
    session: AsyncSession,
    *,
    event_type: str,
    happened_at: datetime,
    user_id: int | None = None,
    payload: dict[str, object] | None = None,
) -> None:
    await OutboxEventsRepo.create(
        session,
        event_type=event_type,
        payload={**(payload or {}), "happened_at": happened_at.isoformat()},
        status=OUTBOX_STATUS_PENDING,
        user_id=user_id,
        created_at=happened_at,
    )
