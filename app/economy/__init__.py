from app.economy.entitlements import EntitlementGate
from app.economy.settlement import SettlementService
from app.economy.tokens import TokenLedgerService
from app.economy.usage import UsageService

__all__ = [
    "EntitlementGate",
    "SettlementService",
    "TokenLedgerService",
    "UsageService",
]
