from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TokenBalanceResponse(BaseModel):
    user_id: int
    balance: int = Field(ge=0)
    total_purchased: int = Field(ge=0)
    total_refunded: int = Field(ge=0)
    total_used: int = Field(ge=0)
    total_expired: int = Field(ge=0)
    last_purchase_at: datetime | None = None
    last_usage_at: datetime | None = None
    low_balance: bool


class TokenPackageResponse(BaseModel):
    code: str
    title: str
    tokens: int = Field(ge=1)
    price: int = Field(ge=0)
    currency: str
    price_per_token: float = Field(ge=0.0)
    savings: int
    popular: bool


class CustomPackageResponse(BaseModel):
    code: str
    min_tokens: int = Field(ge=1)
    max_tokens: int = Field(ge=1)
    price_per_token: int = Field(ge=0)
    currency: str


class TokenPackagesResponse(BaseModel):
    packages: list[TokenPackageResponse]
    custom: CustomPackageResponse


class TokenTransactionResponse(BaseModel):
    id: int
    kind: str
    amount: int = Field(gt=0)
    balance_before: int = Field(ge=0)
    balance_after: int = Field(ge=0)
    reason: str | None = None
    mission_id: UUID | None = None
    conversation_id: UUID | None = None
    created_at: datetime


class TokenHistoryResponse(BaseModel):
    items: list[TokenTransactionResponse]
    next_before_id: int | None = None
