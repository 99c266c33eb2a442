from __future__ import annotations

from app.economy.entitlements.types import DenialReason, EntitlementDecision, EntitlementPolicy
from app.economy.quotas.rules import get_monthly_limit, is_unsubscribed, upgrade_options
from app.economy.quotas.types import GuardedAction, SubscriptionPlan
from app.economy.tokens.types import TokenCost


def _plan_label(plan: SubscriptionPlan | None) -> str:
    return plan.value if plan is not None else "UNKNOWN"


def decide_subscription_quota(
    *,
    action: GuardedAction,
    plan: SubscriptionPlan | None,
    used: int | None,
) -> EntitlementDecision:
    """Admission under the monthly plan quota.

    ``used`` may be ``None`` only for unsubscribed accounts, which are denied
    before usage is looked at.
    """
    if is_unsubscribed(plan):
        return EntitlementDecision(
            allowed=False,
            action=action.value,
            policy=EntitlementPolicy.SUBSCRIPTION_QUOTA,
            reason=DenialReason.SUBSCRIPTION_REQUIRED,
            details={
                "plan": _plan_label(plan),
                "limit": 0,
                "upgrade_options": upgrade_options(plan, action),
            },
        )

    if used is None:
        raise ValueError("used is required for subscribed accounts")

    limit = get_monthly_limit(plan, action)
    if used >= limit:
        return EntitlementDecision(
            allowed=False,
            action=action.value,
            policy=EntitlementPolicy.SUBSCRIPTION_QUOTA,
            reason=DenialReason.QUOTA_EXCEEDED,
            details={
                "plan": _plan_label(plan),
                "used": used,
                "limit": limit,
                "remaining": 0,
                "upgrade_options": upgrade_options(plan, action),
            },
        )

    return EntitlementDecision(
        allowed=True,
        action=action.value,
        policy=EntitlementPolicy.SUBSCRIPTION_QUOTA,
        details={
            "plan": _plan_label(plan),
            "used": used,
            "limit": limit,
            "remaining": limit - used,
        },
    )


def decide_token_balance(
    *,
    action: GuardedAction,
    cost: TokenCost,
    balance: int,
) -> EntitlementDecision:
    breakdown = {"base": cost.base, "featured": cost.featured}
    if balance < cost.total:
        return EntitlementDecision(
            allowed=False,
            action=action.value,
            policy=EntitlementPolicy.TOKEN_BALANCE,
            reason=DenialReason.INSUFFICIENT_TOKENS,
            details={
                "required": cost.total,
                "available": balance,
                "missing": cost.total - balance,
                "breakdown": breakdown,
            },
        )

    return EntitlementDecision(
        allowed=True,
        action=action.value,
        policy=EntitlementPolicy.TOKEN_BALANCE,
        details={
            "required": cost.total,
            "available_before": balance,
            "breakdown": breakdown,
        },
    )
