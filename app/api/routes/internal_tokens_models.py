from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class TokenPurchaseRequest(BaseModel):
    user_id: int = Field(gt=0)
    package_code: str = Field(min_length=1, max_length=32)
    quantity: int | None = Field(default=None, ge=1)
    amount: int | None = Field(default=None, ge=1)
    payment_reference: str | None = Field(default=None, max_length=128)
    idempotency_key: str = Field(min_length=1, max_length=128)


class TokenRefundRequest(BaseModel):
    user_id: int = Field(gt=0)
    amount: int = Field(ge=1)
    idempotency_key: str = Field(min_length=1, max_length=128)
    reason: str | None = Field(default=None, max_length=64)
    mission_id: UUID | None = None
    conversation_id: UUID | None = None


class TokenExpirationRequest(BaseModel):
    user_id: int = Field(gt=0)
    amount: int = Field(ge=1)
    idempotency_key: str = Field(min_length=1, max_length=128)
    reason: str | None = Field(default=None, max_length=64)


class TokenTransactionResultResponse(BaseModel):
    transaction_id: int
    user_id: int
    kind: str
    amount: int = Field(gt=0)
    balance_before: int = Field(ge=0)
    balance_after: int = Field(ge=0)
    idempotent_replay: bool
    package_code: str | None = None
    price: int | None = None
    currency: str | None = None


class LedgerTotalsResponse(BaseModel):
    balance: int
    total_purchased: int
    total_refunded: int
    total_used: int
    total_expired: int


class LedgerAuditResponse(BaseModel):
    user_id: int
    transactions_count: int = Field(ge=0)
    matches: bool
    chain_contiguous: bool
    broken_transaction_ids: list[int]
    replayed: LedgerTotalsResponse
    stored: LedgerTotalsResponse
