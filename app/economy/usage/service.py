from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.db.repo.conversations_repo import ConversationsRepo
from app.db.repo.missions_repo import MissionsRepo
from app.economy.quotas.rules import get_monthly_limit
from app.economy.quotas.types import GuardedAction, SubscriptionPlan
from app.economy.usage.types import UsageSnapshot
from app.economy.usage.window import month_window

UNKNOWN_PLAN_LABEL = "UNKNOWN"


class UsageService:
    @staticmethod
    def current_window(now_utc: datetime) -> tuple[datetime, datetime]:
        return month_window(now_utc, tz_name=get_settings().quota_timezone)

    @staticmethod
    async def count_usage(
        session: AsyncSession,
        *,
        user_id: int,
        action: GuardedAction,
        now_utc: datetime,
    ) -> int:
        window_start, window_end = UsageService.current_window(now_utc)
        if action == GuardedAction.MISSION_CREATE:
            return await MissionsRepo.count_created_between(
                session,
                user_id=user_id,
                from_utc=window_start,
                to_utc=window_end,
            )
        return await ConversationsRepo.count_initiated_between(
            session,
            user_id=user_id,
            from_utc=window_start,
            to_utc=window_end,
        )

    @staticmethod
    async def get_snapshot(
        session: AsyncSession,
        *,
        user_id: int,
        plan: SubscriptionPlan | None,
        action: GuardedAction,
        now_utc: datetime,
    ) -> UsageSnapshot:
        window_start, window_end = UsageService.current_window(now_utc)
        used = await UsageService.count_usage(
            session,
            user_id=user_id,
            action=action,
            now_utc=now_utc,
        )
        return UsageSnapshot(
            action=action.value,
            plan=plan.value if plan is not None else UNKNOWN_PLAN_LABEL,
            used=used,
            limit=get_monthly_limit(plan, action),
            window_start=window_start,
            window_end=window_end,
        )
