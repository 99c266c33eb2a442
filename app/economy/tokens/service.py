from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.token_ledgers import TokenLedger
from app.db.models.token_transactions import TokenTransaction
from app.db.repo.token_ledgers_repo import TokenLedgersRepo
from app.db.repo.token_transactions_repo import TokenTransactionsRepo
from app.economy.tokens.constants import (
    TOKEN_KIND_EXPIRED,
    TOKEN_KIND_PURCHASE,
    TOKEN_KIND_REFUND,
    TOKEN_KIND_USED,
    TRANSACTION_HISTORY_DEFAULT_LIMIT,
    TRANSACTION_HISTORY_MAX_LIMIT,
)
from app.economy.tokens.errors import TokenIdempotencyConflictError
from app.economy.tokens.rules import apply_transaction, replay_transactions, validate_amount
from app.economy.tokens.types import (
    LedgerReplayReport,
    LedgerSnapshot,
    ReplayEntry,
    TokenAppendResult,
    TokenBalance,
)

logger = structlog.get_logger(__name__)


def _snapshot_from_model(ledger: TokenLedger) -> LedgerSnapshot:
    return LedgerSnapshot(
        balance=ledger.balance,
        total_purchased=ledger.total_purchased,
        total_refunded=ledger.total_refunded,
        total_used=ledger.total_used,
        total_expired=ledger.total_expired,
    )


def _apply_snapshot_to_model(
    ledger: TokenLedger,
    snapshot: LedgerSnapshot,
    *,
    kind: str,
    now_utc: datetime,
) -> None:
    ledger.balance = snapshot.balance
    ledger.total_purchased = snapshot.total_purchased
    ledger.total_refunded = snapshot.total_refunded
    ledger.total_used = snapshot.total_used
    ledger.total_expired = snapshot.total_expired
    if kind == TOKEN_KIND_PURCHASE:
        ledger.last_purchase_at = now_utc
    elif kind == TOKEN_KIND_USED:
        ledger.last_usage_at = now_utc
    ledger.updated_at = now_utc
    ledger.version += 1


def _balance_from_model(ledger: TokenLedger) -> TokenBalance:
    return TokenBalance(
        user_id=ledger.user_id,
        balance=ledger.balance,
        total_purchased=ledger.total_purchased,
        total_refunded=ledger.total_refunded,
        total_used=ledger.total_used,
        total_expired=ledger.total_expired,
        last_purchase_at=ledger.last_purchase_at,
        last_usage_at=ledger.last_usage_at,
    )


def _as_append_result(transaction: TokenTransaction, *, idempotent_replay: bool) -> TokenAppendResult:
    return TokenAppendResult(
        transaction_id=transaction.id,
        user_id=transaction.user_id,
        kind=transaction.kind,
        amount=transaction.amount,
        balance_before=transaction.balance_before,
        balance_after=transaction.balance_after,
        idempotent_replay=idempotent_replay,
        mission_id=transaction.mission_id,
        conversation_id=transaction.conversation_id,
    )


def _replay_or_conflict(
    existing: TokenTransaction,
    *,
    user_id: int,
    kind: str,
    amount: int,
) -> TokenAppendResult:
    if existing.user_id != user_id or existing.kind != kind or existing.amount != amount:
        raise TokenIdempotencyConflictError
    return _as_append_result(existing, idempotent_replay=True)


class TokenLedgerService:
    @staticmethod
    async def get_balance(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> TokenBalance:
        ledger = await TokenLedgersRepo.get_or_create(session, user_id=user_id, now_utc=now_utc)
        return _balance_from_model(ledger)

    @staticmethod
    async def append_transaction(
        session: AsyncSession,
        *,
        user_id: int,
        kind: str,
        amount: int,
        now_utc: datetime,
        reason: str | None = None,
        idempotency_key: str | None = None,
        mission_id: UUID | None = None,
        conversation_id: UUID | None = None,
        metadata: dict[str, object] | None = None,
    ) -> TokenAppendResult:
        validate_amount(amount)

        # Row lock serializes appends per account; balance_before is read under it.
        ledger = await TokenLedgersRepo.get_or_create_for_update(
            session,
            user_id=user_id,
            now_utc=now_utc,
        )

        if idempotency_key is not None:
            existing = await TokenTransactionsRepo.get_by_idempotency_key(session, idempotency_key)
            if existing is not None:
                return _replay_or_conflict(existing, user_id=user_id, kind=kind, amount=amount)

        before = _snapshot_from_model(ledger)
        after = apply_transaction(before, kind=kind, amount=amount)

        try:
            async with session.begin_nested():
                transaction = await TokenTransactionsRepo.create(
                    session,
                    transaction=TokenTransaction(
                        user_id=user_id,
                        kind=kind,
                        amount=amount,
                        balance_before=before.balance,
                        balance_after=after.balance,
                        reason=reason,
                        mission_id=mission_id,
                        conversation_id=conversation_id,
                        idempotency_key=idempotency_key,
                        metadata_=dict(metadata or {}),
                        created_at=now_utc,
                    ),
                )
        except IntegrityError:
            # Another account's transaction committed the same key after our lookup.
            if idempotency_key is None:
                raise
            existing = await TokenTransactionsRepo.get_by_idempotency_key(session, idempotency_key)
            if existing is None:
                raise
            return _replay_or_conflict(existing, user_id=user_id, kind=kind, amount=amount)
        _apply_snapshot_to_model(ledger, after, kind=kind, now_utc=now_utc)
        await session.flush()

        logger.info(
            "token_transaction_appended",
            user_id=user_id,
            kind=kind,
            amount=amount,
            balance_before=before.balance,
            balance_after=after.balance,
            transaction_id=transaction.id,
        )
        return _as_append_result(transaction, idempotent_replay=False)

    @staticmethod
    async def purchase_tokens(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
        idempotency_key: str | None = None,
        reason: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> TokenAppendResult:
        return await TokenLedgerService.append_transaction(
            session,
            user_id=user_id,
            kind=TOKEN_KIND_PURCHASE,
            amount=amount,
            now_utc=now_utc,
            reason=reason or "purchase",
            idempotency_key=idempotency_key,
            metadata=metadata,
        )

    @staticmethod
    async def refund_tokens(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
        idempotency_key: str | None = None,
        reason: str | None = None,
        mission_id: UUID | None = None,
        conversation_id: UUID | None = None,
        metadata: dict[str, object] | None = None,
    ) -> TokenAppendResult:
        return await TokenLedgerService.append_transaction(
            session,
            user_id=user_id,
            kind=TOKEN_KIND_REFUND,
            amount=amount,
            now_utc=now_utc,
            reason=reason or "refund",
            idempotency_key=idempotency_key,
            mission_id=mission_id,
            conversation_id=conversation_id,
            metadata=metadata,
        )

    @staticmethod
    async def debit_tokens(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
        reason: str,
        idempotency_key: str | None = None,
        mission_id: UUID | None = None,
        conversation_id: UUID | None = None,
        metadata: dict[str, object] | None = None,
    ) -> TokenAppendResult:
        return await TokenLedgerService.append_transaction(
            session,
            user_id=user_id,
            kind=TOKEN_KIND_USED,
            amount=amount,
            now_utc=now_utc,
            reason=reason,
            idempotency_key=idempotency_key,
            mission_id=mission_id,
            conversation_id=conversation_id,
            metadata=metadata,
        )

    @staticmethod
    async def expire_tokens(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
        idempotency_key: str | None = None,
        reason: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> TokenAppendResult:
        return await TokenLedgerService.append_transaction(
            session,
            user_id=user_id,
            kind=TOKEN_KIND_EXPIRED,
            amount=amount,
            now_utc=now_utc,
            reason=reason or "expired",
            idempotency_key=idempotency_key,
            metadata=metadata,
        )

    @staticmethod
    async def list_transactions(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int = TRANSACTION_HISTORY_DEFAULT_LIMIT,
        before_id: int | None = None,
    ) -> list[TokenTransaction]:
        bounded_limit = max(1, min(limit, TRANSACTION_HISTORY_MAX_LIMIT))
        return await TokenTransactionsRepo.list_recent_for_user(
            session,
            user_id=user_id,
            limit=bounded_limit,
            before_id=before_id,
        )

    @staticmethod
    async def replay_ledger(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> LedgerReplayReport:
        ledger = await TokenLedgersRepo.get_or_create(session, user_id=user_id, now_utc=now_utc)
        transactions = await TokenTransactionsRepo.list_all_for_user_in_order(
            session,
            user_id=user_id,
        )
        replayed, broken_ids = replay_transactions(
            ReplayEntry(
                transaction_id=transaction.id,
                kind=transaction.kind,
                amount=transaction.amount,
                balance_before=transaction.balance_before,
                balance_after=transaction.balance_after,
            )
            for transaction in transactions
        )
        report = LedgerReplayReport(
            user_id=user_id,
            transactions_count=len(transactions),
            replayed=replayed,
            stored=_snapshot_from_model(ledger),
            chain_contiguous=not broken_ids,
            broken_transaction_ids=broken_ids,
        )
        if not report.matches:
            logger.warning(
                "token_ledger_replay_mismatch",
                user_id=user_id,
                stored_balance=report.stored.balance,
                replayed_balance=report.replayed.balance,
                broken_transaction_ids=broken_ids,
            )
        return report
