from app.economy.quotas.rules import (
    effective_plan,
    get_monthly_limit,
    is_unsubscribed,
    normalize_plan,
    upgrade_options,
)
from app.economy.quotas.types import GuardedAction, SubscriptionPlan

__all__ = [
    "GuardedAction",
    "SubscriptionPlan",
    "effective_plan",
    "get_monthly_limit",
    "is_unsubscribed",
    "normalize_plan",
    "upgrade_options",
]
