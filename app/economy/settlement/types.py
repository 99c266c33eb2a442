from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SettlementStatus(str, Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class SettlementOutcome:
    status: SettlementStatus
    amount: int = 0
    transaction_id: int | None = None
    balance_before: int | None = None
    balance_after: int | None = None
    idempotent_replay: bool = False
    warning: str | None = None

    def as_payload(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "amount": self.amount,
            "transaction_id": self.transaction_id,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "warning": self.warning,
        }
