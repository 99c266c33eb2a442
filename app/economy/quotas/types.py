from __future__ import annotations

from enum import Enum


class SubscriptionPlan(str, Enum):
    NONE = "NONE"
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class GuardedAction(str, Enum):
    MISSION_CREATE = "MISSION_CREATE"
    CONTACT_CREATE = "CONTACT_CREATE"
