from __future__ import annotations

from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.conversations import Conversation
from app.db.models.missions import Mission
from app.economy.entitlements.types import AccountContext, AccountRole
from app.economy.quotas.rules import effective_plan
from app.economy.quotas.types import GuardedAction
from app.economy.settlement.types import SettlementOutcome
from app.economy.usage.service import UsageService

from .marketplace_models import (
    ConversationResponse,
    MissionResponse,
    SettlementResponse,
    UsageResponse,
)


def _assert_company(account: AccountContext) -> None:
    if account.role != AccountRole.COMPANY.value:
        raise HTTPException(status_code=403, detail={"code": "E_COMPANIES_ONLY"})


def _as_mission_response(mission: Mission) -> MissionResponse:
    return MissionResponse(
        id=mission.id,
        created_by_user_id=mission.created_by_user_id,
        title=mission.title,
        description=mission.description,
        city=mission.city,
        featured_listing=mission.featured_listing,
        token_cost=mission.token_cost,
        status=mission.status,
        created_at=mission.created_at,
    )


def _as_conversation_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        initiated_by_user_id=conversation.initiated_by_user_id,
        participant_user_id=conversation.participant_user_id,
        mission_id=conversation.mission_id,
        created_at=conversation.created_at,
    )


def _as_settlement_response(settlement: SettlementOutcome | None) -> SettlementResponse | None:
    if settlement is None:
        return None
    return SettlementResponse(**settlement.as_payload())


async def _build_usage_response(
    session: AsyncSession,
    *,
    account: AccountContext,
    action: GuardedAction,
    now_utc: datetime,
) -> UsageResponse:
    plan = effective_plan(
        account.subscription_plan,
        subscription_starts_at=account.subscription_starts_at,
        subscription_ends_at=account.subscription_ends_at,
        now_utc=now_utc,
    )
    snapshot = await UsageService.get_snapshot(
        session,
        user_id=account.user_id,
        plan=plan,
        action=action,
        now_utc=now_utc,
    )
    percentage = round(snapshot.used * 100 / snapshot.limit) if snapshot.limit > 0 else 0
    return UsageResponse(
        action=snapshot.action,
        plan=snapshot.plan,
        used=snapshot.used,
        limit=snapshot.limit,
        remaining=snapshot.remaining,
        percentage=percentage,
        can_create=not snapshot.limit_reached,
        window_start=snapshot.window_start,
        next_reset_at=snapshot.next_reset_at,
    )
