from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class MissionCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    city: str = Field(min_length=1, max_length=128)
    featured_listing: bool = False


class MissionResponse(BaseModel):
    id: UUID
    created_by_user_id: int
    title: str
    description: str
    city: str
    featured_listing: bool
    token_cost: int | None = None
    status: str
    created_at: datetime


class SettlementResponse(BaseModel):
    status: str
    amount: int = Field(ge=0)
    transaction_id: int | None = None
    balance_before: int | None = None
    balance_after: int | None = None
    warning: str | None = None


class MissionCreateResponse(BaseModel):
    success: bool
    mission: MissionResponse
    entitlement: dict[str, object]
    settlement: SettlementResponse | None = None


class ConversationCreateRequest(BaseModel):
    participant_user_id: int = Field(gt=0)
    mission_id: UUID | None = None


class ConversationResponse(BaseModel):
    id: UUID
    initiated_by_user_id: int
    participant_user_id: int
    mission_id: UUID | None = None
    created_at: datetime


class ConversationCreateResponse(BaseModel):
    success: bool
    created: bool
    conversation: ConversationResponse
    entitlement: dict[str, object] | None = None
    settlement: SettlementResponse | None = None


class UsageResponse(BaseModel):
    action: str
    plan: str
    used: int = Field(ge=0)
    limit: int = Field(ge=0)
    remaining: int = Field(ge=0)
    percentage: int = Field(ge=0)
    can_create: bool
    window_start: datetime
    next_reset_at: datetime


class CanCreateResponse(BaseModel):
    can_create: bool
    role: str
    action: str
    policy: str | None = None
    reason: str | None = None
    code: str | None = None
    details: dict[str, object]
