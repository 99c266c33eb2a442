from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.token_ledgers import TokenLedger


class TokenLedgersRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> TokenLedger | None:
        return await session.get(TokenLedger, user_id)

    @staticmethod
    async def get_by_user_id_for_update(session: AsyncSession, user_id: int) -> TokenLedger | None:
        stmt = (
            select(TokenLedger)
            .where(TokenLedger.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_empty_if_missing(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            postgresql_insert(TokenLedger)
            .values(
                user_id=user_id,
                balance=0,
                total_purchased=0,
                total_refunded=0,
                total_used=0,
                total_expired=0,
                version=0,
                created_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[TokenLedger.user_id])
            .returning(TokenLedger.user_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_or_create(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> TokenLedger:
        ledger = await TokenLedgersRepo.get_by_user_id(session, user_id)
        if ledger is not None:
            return ledger

        await TokenLedgersRepo.create_empty_if_missing(session, user_id=user_id, now_utc=now_utc)
        ledger = await TokenLedgersRepo.get_by_user_id(session, user_id)
        if ledger is None:
            raise ValueError("token ledger was not created")
        return ledger

    @staticmethod
    async def get_or_create_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> TokenLedger:
        ledger = await TokenLedgersRepo.get_by_user_id_for_update(session, user_id)
        if ledger is not None:
            return ledger

        await TokenLedgersRepo.create_empty_if_missing(session, user_id=user_id, now_utc=now_utc)
        ledger = await TokenLedgersRepo.get_by_user_id_for_update(session, user_id)
        if ledger is None:
            raise ValueError("token ledger was not created")
        return ledger
