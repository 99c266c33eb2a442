from app.economy.entitlements.gate import EntitlementGate
from app.economy.entitlements.types import (
    AccountContext,
    AccountRole,
    DenialReason,
    EntitlementDecision,
    EntitlementPolicy,
)

__all__ = [
    "AccountContext",
    "AccountRole",
    "DenialReason",
    "EntitlementDecision",
    "EntitlementGate",
    "EntitlementPolicy",
]
