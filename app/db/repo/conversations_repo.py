from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.conversations import Conversation


class ConversationsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, conversation_id: UUID) -> Conversation | None:
        return await session.get(Conversation, conversation_id)

    @staticmethod
    async def get_between(
        session: AsyncSession,
        *,
        user_id: int,
        other_user_id: int,
        mission_id: UUID | None,
    ) -> Conversation | None:
        stmt = select(Conversation).where(
            or_(
                and_(
                    Conversation.initiated_by_user_id == user_id,
                    Conversation.participant_user_id == other_user_id,
                ),
                and_(
                    Conversation.initiated_by_user_id == other_user_id,
                    Conversation.participant_user_id == user_id,
                ),
            )
        )
        if mission_id is None:
            stmt = stmt.where(Conversation.mission_id.is_(None))
        else:
            stmt = stmt.where(Conversation.mission_id == mission_id)
        stmt = stmt.order_by(Conversation.created_at.asc()).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, conversation: Conversation) -> Conversation:
        session.add(conversation)
        await session.flush()
        return conversation

    @staticmethod
    async def count_initiated_between(
        session: AsyncSession,
        *,
        user_id: int,
        from_utc: datetime,
        to_utc: datetime,
    ) -> int:
        stmt = select(func.count(Conversation.id)).where(
            Conversation.initiated_by_user_id == user_id,
            Conversation.created_at >= from_utc,
            Conversation.created_at < to_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
