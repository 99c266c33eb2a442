from __future__ import annotations

from datetime import datetime

from app.economy.quotas.constants import MONTHLY_LIMITS, PLAN_UPGRADE_ORDER
from app.economy.quotas.types import GuardedAction, SubscriptionPlan


def normalize_plan(plan: str | None) -> SubscriptionPlan | None:
    """Map a stored plan value onto a known plan.

    Returns ``None`` for anything unrecognized so callers can tell an
    unknown plan apart from the explicit unsubscribed sentinel.
    """
    if plan is None:
        return SubscriptionPlan.NONE
    candidate = plan.strip().upper()
    if not candidate:
        return SubscriptionPlan.NONE
    try:
        return SubscriptionPlan(candidate)
    except ValueError:
        return None


def effective_plan(
    plan: str | None,
    *,
    subscription_ends_at: datetime | None,
    now_utc: datetime,
    subscription_starts_at: datetime | None = None,
) -> SubscriptionPlan | None:
    """Plan in force at ``now_utc``: outside ``[starts_at, ends_at)`` it reads as ``NONE``."""
    normalized = normalize_plan(plan)
    if normalized is None or normalized == SubscriptionPlan.NONE:
        return normalized
    if subscription_starts_at is not None and subscription_starts_at > now_utc:
        return SubscriptionPlan.NONE
    if subscription_ends_at is not None and subscription_ends_at <= now_utc:
        return SubscriptionPlan.NONE
    return normalized


def get_monthly_limit(plan: SubscriptionPlan | str | None, action: GuardedAction) -> int:
    resolved = plan if isinstance(plan, SubscriptionPlan) else normalize_plan(plan)
    if resolved is None:
        return 0
    return MONTHLY_LIMITS[action].get(resolved, 0)


def is_unsubscribed(plan: SubscriptionPlan | None) -> bool:
    return plan is None or plan == SubscriptionPlan.NONE


def upgrade_options(
    plan: SubscriptionPlan | None,
    action: GuardedAction,
) -> list[dict[str, object]]:
    current_limit = get_monthly_limit(plan, action)
    return [
        {"plan": candidate.value, "limit": get_monthly_limit(candidate, action)}
        for candidate in PLAN_UPGRADE_ORDER
        if get_monthly_limit(candidate, action) > current_limit
    ]
