from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.economy.entitlements.types import AccountRole
from app.economy.tokens.catalog import resolve_package
from app.economy.tokens.errors import (
    InsufficientTokenBalanceError,
    TokenAmountValidationError,
    TokenIdempotencyConflictError,
    TokenPackageNotFoundError,
    TokenPackageQuantityError,
)
from app.economy.tokens.service import TokenLedgerService
from app.economy.tokens.types import LedgerSnapshot, TokenAppendResult, TokenPackage
from app.services.internal_auth import assert_internal_access

from .internal_tokens_models import (
    LedgerAuditResponse,
    LedgerTotalsResponse,
    TokenExpirationRequest,
    TokenPurchaseRequest,
    TokenRefundRequest,
    TokenTransactionResultResponse,
)

router = APIRouter(tags=["internal", "tokens"])
logger = structlog.get_logger(__name__)


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    assert_internal_access(
        request,
        expected_token=settings.internal_api_token,
        allowlist=settings.internal_api_allowlist,
        trusted_proxies=settings.internal_api_trusted_proxies,
        scope="internal_tokens",
    )


async def _assert_token_account(session: AsyncSession, *, user_id: int) -> None:
    user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail={"code": "E_USER_NOT_FOUND"})
    if user.role != AccountRole.INDIVIDUAL.value:
        raise HTTPException(status_code=409, detail={"code": "E_TOKENS_INDIVIDUALS_ONLY"})


def _as_result_response(
    result: TokenAppendResult,
    *,
    package: TokenPackage | None = None,
) -> TokenTransactionResultResponse:
    return TokenTransactionResultResponse(
        transaction_id=result.transaction_id,
        user_id=result.user_id,
        kind=result.kind,
        amount=result.amount,
        balance_before=result.balance_before,
        balance_after=result.balance_after,
        idempotent_replay=result.idempotent_replay,
        package_code=package.code if package is not None else None,
        price=package.price if package is not None else None,
        currency=package.currency if package is not None else None,
    )


def _as_totals_response(snapshot: LedgerSnapshot) -> LedgerTotalsResponse:
    return LedgerTotalsResponse(
        balance=snapshot.balance,
        total_purchased=snapshot.total_purchased,
        total_refunded=snapshot.total_refunded,
        total_used=snapshot.total_used,
        total_expired=snapshot.total_expired,
    )


@router.post("/internal/tokens/purchases", response_model=TokenTransactionResultResponse)
async def record_token_purchase(
    payload: TokenPurchaseRequest,
    request: Request,
) -> TokenTransactionResultResponse:
    _assert_internal_access(request)

    try:
        package = resolve_package(payload.package_code, quantity=payload.quantity)
    except TokenPackageNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_TOKEN_PACKAGE_NOT_FOUND"}) from exc
    except TokenPackageQuantityError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_TOKEN_PACKAGE_QUANTITY"}) from exc

    if payload.amount is not None and payload.amount != package.tokens:
        raise HTTPException(status_code=422, detail={"code": "E_PACKAGE_AMOUNT_MISMATCH"})

    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await _assert_token_account(session, user_id=payload.user_id)
            result = await TokenLedgerService.purchase_tokens(
                session,
                user_id=payload.user_id,
                amount=package.tokens,
                now_utc=now_utc,
                idempotency_key=payload.idempotency_key,
                metadata={
                    "package_code": package.code,
                    "price": package.price,
                    "currency": package.currency,
                    "payment_reference": payload.payment_reference,
                },
            )
    except TokenIdempotencyConflictError as exc:
        raise HTTPException(status_code=409, detail={"code": "E_IDEMPOTENCY_CONFLICT"}) from exc
    except TokenAmountValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_TOKEN_AMOUNT_INVALID"}) from exc

    logger.info(
        "token_purchase_recorded",
        user_id=payload.user_id,
        package_code=package.code,
        amount=package.tokens,
        idempotent_replay=result.idempotent_replay,
    )
    return _as_result_response(result, package=package)


@router.post("/internal/tokens/refunds", response_model=TokenTransactionResultResponse)
async def record_token_refund(
    payload: TokenRefundRequest,
    request: Request,
) -> TokenTransactionResultResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await _assert_token_account(session, user_id=payload.user_id)
            result = await TokenLedgerService.refund_tokens(
                session,
                user_id=payload.user_id,
                amount=payload.amount,
                now_utc=now_utc,
                idempotency_key=payload.idempotency_key,
                reason=payload.reason,
                mission_id=payload.mission_id,
                conversation_id=payload.conversation_id,
            )
    except TokenIdempotencyConflictError as exc:
        raise HTTPException(status_code=409, detail={"code": "E_IDEMPOTENCY_CONFLICT"}) from exc
    except TokenAmountValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_TOKEN_AMOUNT_INVALID"}) from exc

    logger.info(
        "token_refund_recorded",
        user_id=payload.user_id,
        amount=payload.amount,
        idempotent_replay=result.idempotent_replay,
    )
    return _as_result_response(result)


@router.post("/internal/tokens/expirations", response_model=TokenTransactionResultResponse)
async def record_token_expiration(
    payload: TokenExpirationRequest,
    request: Request,
) -> TokenTransactionResultResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            await _assert_token_account(session, user_id=payload.user_id)
            result = await TokenLedgerService.expire_tokens(
                session,
                user_id=payload.user_id,
                amount=payload.amount,
                now_utc=now_utc,
                idempotency_key=payload.idempotency_key,
                reason=payload.reason,
            )
    except InsufficientTokenBalanceError as exc:
        raise HTTPException(
            status_code=409,
            detail={
                "code": "E_INSUFFICIENT_TOKENS",
                "required": exc.required,
                "available": exc.available,
            },
        ) from exc
    except TokenIdempotencyConflictError as exc:
        raise HTTPException(status_code=409, detail={"code": "E_IDEMPOTENCY_CONFLICT"}) from exc
    except TokenAmountValidationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_TOKEN_AMOUNT_INVALID"}) from exc

    logger.info(
        "token_expiration_recorded",
        user_id=payload.user_id,
        amount=payload.amount,
        idempotent_replay=result.idempotent_replay,
    )
    return _as_result_response(result)


@router.get("/internal/tokens/{user_id}/audit", response_model=LedgerAuditResponse)
async def audit_token_ledger(user_id: int, request: Request) -> LedgerAuditResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        await _assert_token_account(session, user_id=user_id)
        report = await TokenLedgerService.replay_ledger(session, user_id=user_id, now_utc=now_utc)

    return LedgerAuditResponse(
        user_id=report.user_id,
        transactions_count=report.transactions_count,
        matches=report.matches,
        chain_contiguous=report.chain_contiguous,
        broken_transaction_ids=report.broken_transaction_ids,
        replayed=_as_totals_response(report.replayed),
        stored=_as_totals_response(report.stored),
    )
