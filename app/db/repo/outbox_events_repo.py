from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.outbox_events import OutboxEvent


class OutboxEventsRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        event_type: str,
        payload: dict[str, object],
        status: str,
        user_id: int | None = None,
        created_at: datetime | None = None,
    ) -> OutboxEvent:
        event = OutboxEvent(
            user_id=user_id,
            event_type=event_type,
            payload=payload,
            status=status,
        )
        if created_at is not None:
            event.created_at = created_at
        session.add(event)
        await session.flush()
        return event

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        event_types: tuple[str, ...],
        limit: int = 50,
    ) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.user_id == user_id,
                OutboxEvent.event_type.in_(event_types),
            )
            .order_by(OutboxEvent.created_at.desc(), OutboxEvent.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
