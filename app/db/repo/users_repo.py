from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        role: str,
        display_name: str | None = None,
        subscription_plan: str = "NONE",
        subscription_starts_at: datetime | None = None,
        subscription_ends_at: datetime | None = None,
    ) -> User:
        user = User(
            role=role,
            display_name=display_name,
            subscription_plan=subscription_plan,
            subscription_starts_at=subscription_starts_at,
            subscription_ends_at=subscription_ends_at,
        )
        session.add(user)
        await session.flush()
        return user
