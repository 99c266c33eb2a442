from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.missions import Mission


class MissionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, mission_id: UUID) -> Mission | None:
        return await session.get(Mission, mission_id)

    @staticmethod
    async def create(session: AsyncSession, *, mission: Mission) -> Mission:
        session.add(mission)
        await session.flush()
        return mission

    @staticmethod
    async def count_created_between(
        session: AsyncSession,
        *,
        user_id: int,
        from_utc: datetime,
        to_utc: datetime,
    ) -> int:
        stmt = select(func.count(Mission.id)).where(
            Mission.created_by_user_id == user_id,
            Mission.created_at >= from_utc,
            Mission.created_at < to_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
