from __future__ import annotations

from datetime import datetime
from uuid import uuid4

import structlog

from app.db.models.missions import Mission
from app.db.repo.missions_repo import MissionsRepo
from app.db.session import SessionLocal
from app.economy.entitlements.gate import EntitlementGate
from app.economy.entitlements.types import AccountContext, EntitlementPolicy
from app.economy.quotas.types import GuardedAction

from .settlement import record_denial, settle_guarded_action
from .types import MissionCreationResult, MissionDraft

logger = structlog.get_logger(__name__)

MISSION_STATUS_PUBLISHED = "PUBLISHED"


class MissionService:
    @staticmethod
    async def create_mission(
        *,
        account: AccountContext,
        draft: MissionDraft,
        now_utc: datetime,
    ) -> MissionCreationResult:
        action = GuardedAction.MISSION_CREATE

        async with SessionLocal.begin() as session:
            decision = await EntitlementGate.evaluate(
                session,
                account=account,
                action=action,
                now_utc=now_utc,
                featured_listing=draft.featured_listing,
            )
            if not decision.allowed:
                await record_denial(
                    session,
                    user_id=account.user_id,
                    decision=decision,
                    now_utc=now_utc,
                )
                return MissionCreationResult(decision=decision)

            token_based = decision.policy == EntitlementPolicy.TOKEN_BALANCE
            mission = await MissionsRepo.create(
                session,
                mission=Mission(
                    id=uuid4(),
                    created_by_user_id=account.user_id,
                    title=draft.title,
                    description=draft.description,
                    city=draft.city,
                    featured_listing=draft.featured_listing if token_based else False,
                    token_cost=decision.required_tokens if token_based else None,
                    status=MISSION_STATUS_PUBLISHED,
                    created_at=now_utc,
                ),
            )
            settlement = await settle_guarded_action(
                session,
                user_id=account.user_id,
                decision=decision,
                action=action,
                record_id=mission.id,
                now_utc=now_utc,
            )

        logger.info(
            "mission_created",
            user_id=account.user_id,
            mission_id=str(mission.id),
            policy=decision.policy.value,
            settlement=settlement.status.value,
        )
        return MissionCreationResult(decision=decision, mission=mission, settlement=settlement)
