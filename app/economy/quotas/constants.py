from __future__ import annotations

from app.economy.quotas.types import GuardedAction, SubscriptionPlan

MONTHLY_MISSION_LIMITS: dict[SubscriptionPlan, int] = {
    SubscriptionPlan.NONE: 0,
    SubscriptionPlan.BASIC: 3,
    SubscriptionPlan.STANDARD: 5,
    SubscriptionPlan.PREMIUM: 8,
}

MONTHLY_CONTACT_LIMITS: dict[SubscriptionPlan, int] = {
    SubscriptionPlan.NONE: 0,
    SubscriptionPlan.BASIC: 2,
    SubscriptionPlan.STANDARD: 7,
    SubscriptionPlan.PREMIUM: 10,
}

MONTHLY_LIMITS: dict[GuardedAction, dict[SubscriptionPlan, int]] = {
    GuardedAction.MISSION_CREATE: MONTHLY_MISSION_LIMITS,
    GuardedAction.CONTACT_CREATE: MONTHLY_CONTACT_LIMITS,
}

PLAN_UPGRADE_ORDER: tuple[SubscriptionPlan, ...] = (
    SubscriptionPlan.NONE,
    SubscriptionPlan.BASIC,
    SubscriptionPlan.STANDARD,
    SubscriptionPlan.PREMIUM,
)
