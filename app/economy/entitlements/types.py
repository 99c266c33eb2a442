from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AccountRole(str, Enum):
    WORKER = "WORKER"
    COMPANY = "COMPANY"
    INDIVIDUAL = "INDIVIDUAL"


class EntitlementPolicy(str, Enum):
    SUBSCRIPTION_QUOTA = "SUBSCRIPTION_QUOTA"
    TOKEN_BALANCE = "TOKEN_BALANCE"


class DenialReason(str, Enum):
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INSUFFICIENT_TOKENS = "INSUFFICIENT_TOKENS"


DENIAL_CODES: dict[DenialReason, str] = {
    DenialReason.SUBSCRIPTION_REQUIRED: "E_SUBSCRIPTION_REQUIRED",
    DenialReason.QUOTA_EXCEEDED: "E_QUOTA_EXCEEDED",
    DenialReason.INSUFFICIENT_TOKENS: "E_INSUFFICIENT_TOKENS",
}


@dataclass(frozen=True, slots=True)
class AccountContext:
    user_id: int
    role: str
    subscription_plan: str | None = None
    subscription_starts_at: datetime | None = None
    subscription_ends_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class EntitlementDecision:
    allowed: bool
    action: str
    policy: EntitlementPolicy
    reason: DenialReason | None = None
    details: dict[str, object] = field(default_factory=dict)

    @property
    def code(self) -> str | None:
        if self.reason is None:
            return None
        return DENIAL_CODES[self.reason]

    @property
    def required_tokens(self) -> int:
        if self.policy != EntitlementPolicy.TOKEN_BALANCE:
            return 0
        value = self.details.get("required")
        return value if isinstance(value, int) else 0
