from app.economy.settlement.service import SettlementService
from app.economy.settlement.types import SettlementOutcome, SettlementStatus

__all__ = ["SettlementOutcome", "SettlementService", "SettlementStatus"]
