from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.token_transactions import TokenTransaction


class TokenTransactionsRepo:
    @staticmethod
    async def get_by_idempotency_key(
        session: AsyncSession,
        idempotency_key: str,
    ) -> TokenTransaction | None:
        stmt = select(TokenTransaction).where(TokenTransaction.idempotency_key == idempotency_key)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, transaction: TokenTransaction) -> TokenTransaction:
        session.add(transaction)
        await session.flush()
        return transaction

    @staticmethod
    async def list_recent_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int,
        before_id: int | None = None,
    ) -> list[TokenTransaction]:
        stmt = select(TokenTransaction).where(TokenTransaction.user_id == user_id)
        if before_id is not None:
            stmt = stmt.where(TokenTransaction.id < before_id)
        stmt = stmt.order_by(TokenTransaction.id.desc()).limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_all_for_user_in_order(
        session: AsyncSession,
        *,
        user_id: int,
    ) -> list[TokenTransaction]:
        stmt = (
            select(TokenTransaction)
            .where(TokenTransaction.user_id == user_id)
            .order_by(TokenTransaction.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_for_user_by_kind(session: AsyncSession, *, user_id: int) -> dict[str, int]:
        stmt = (
            select(TokenTransaction.kind, func.count(TokenTransaction.id))
            .where(TokenTransaction.user_id == user_id)
            .group_by(TokenTransaction.kind)
        )
        result = await session.execute(stmt)
        return {kind: int(count or 0) for kind, count in result.all()}
