from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.config import get_settings
from app.db.models.token_transactions import TokenTransaction
from app.db.session import SessionLocal
from app.economy.entitlements.types import AccountContext, AccountRole
from app.economy.tokens.catalog import TOKEN_PACKAGES, package_savings
from app.economy.tokens.constants import (
    CUSTOM_PACKAGE_CODE,
    CUSTOM_PACKAGE_MAX_TOKENS,
    CUSTOM_PACKAGE_MIN_TOKENS,
    CUSTOM_PACKAGE_PRICE_PER_TOKEN,
    TOKEN_PRICE_CURRENCY,
    TRANSACTION_HISTORY_DEFAULT_LIMIT,
    TRANSACTION_HISTORY_MAX_LIMIT,
)
from app.economy.tokens.service import TokenLedgerService
from app.services.identity import get_current_account

from .tokens_models import (
    CustomPackageResponse,
    TokenBalanceResponse,
    TokenHistoryResponse,
    TokenPackageResponse,
    TokenPackagesResponse,
    TokenTransactionResponse,
)

router = APIRouter(tags=["tokens"])


def _assert_individual(account: AccountContext) -> None:
    if account.role != AccountRole.INDIVIDUAL.value:
        raise HTTPException(status_code=403, detail={"code": "E_TOKENS_INDIVIDUALS_ONLY"})


def _as_transaction_response(transaction: TokenTransaction) -> TokenTransactionResponse:
    return TokenTransactionResponse(
        id=transaction.id,
        kind=transaction.kind,
        amount=transaction.amount,
        balance_before=transaction.balance_before,
        balance_after=transaction.balance_after,
        reason=transaction.reason,
        mission_id=transaction.mission_id,
        conversation_id=transaction.conversation_id,
        created_at=transaction.created_at,
    )


@router.get("/tokens/balance", response_model=TokenBalanceResponse)
async def get_token_balance(
    account: AccountContext = Depends(get_current_account),
) -> TokenBalanceResponse:
    _assert_individual(account)
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        balance = await TokenLedgerService.get_balance(
            session,
            user_id=account.user_id,
            now_utc=now_utc,
        )
    return TokenBalanceResponse(
        user_id=balance.user_id,
        balance=balance.balance,
        total_purchased=balance.total_purchased,
        total_refunded=balance.total_refunded,
        total_used=balance.total_used,
        total_expired=balance.total_expired,
        last_purchase_at=balance.last_purchase_at,
        last_usage_at=balance.last_usage_at,
        low_balance=balance.balance < get_settings().token_low_balance_threshold,
    )


@router.get("/tokens/packages", response_model=TokenPackagesResponse)
async def list_token_packages(
    account: AccountContext = Depends(get_current_account),
) -> TokenPackagesResponse:
    _assert_individual(account)
    return TokenPackagesResponse(
        packages=[
            TokenPackageResponse(
                code=package.code,
                title=package.title,
                tokens=package.tokens,
                price=package.price,
                currency=package.currency,
                price_per_token=package.price_per_token,
                savings=package_savings(package),
                popular=package.popular,
            )
            for package in TOKEN_PACKAGES.values()
        ],
        custom=CustomPackageResponse(
            code=CUSTOM_PACKAGE_CODE,
            min_tokens=CUSTOM_PACKAGE_MIN_TOKENS,
            max_tokens=CUSTOM_PACKAGE_MAX_TOKENS,
            price_per_token=CUSTOM_PACKAGE_PRICE_PER_TOKEN,
            currency=TOKEN_PRICE_CURRENCY,
        ),
    )


@router.get("/tokens/history", response_model=TokenHistoryResponse)
async def get_token_history(
    limit: int = Query(default=TRANSACTION_HISTORY_DEFAULT_LIMIT, ge=1, le=TRANSACTION_HISTORY_MAX_LIMIT),
    before_id: int | None = Query(default=None, ge=1),
    account: AccountContext = Depends(get_current_account),
) -> TokenHistoryResponse:
    _assert_individual(account)
    async with SessionLocal() as session:
        transactions = await TokenLedgerService.list_transactions(
            session,
            user_id=account.user_id,
            limit=limit,
            before_id=before_id,
        )
    next_before_id = transactions[-1].id if len(transactions) == limit else None
    return TokenHistoryResponse(
        items=[_as_transaction_response(transaction) for transaction in transactions],
        next_before_id=next_before_id,
    )
