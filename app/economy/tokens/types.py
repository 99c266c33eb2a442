from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    balance: int = 0
    total_purchased: int = 0
    total_refunded: int = 0
    total_used: int = 0
    total_expired: int = 0

    @property
    def is_consistent(self) -> bool:
        return self.balance >= 0 and self.balance == (
            self.total_purchased + self.total_refunded - self.total_used - self.total_expired
        )


@dataclass(frozen=True, slots=True)
class TokenCost:
    base: int
    featured: int = 0

    @property
    def total(self) -> int:
        return self.base + self.featured


@dataclass(frozen=True, slots=True)
class TokenBalance:
    user_id: int
    balance: int
    total_purchased: int
    total_refunded: int
    total_used: int
    total_expired: int
    last_purchase_at: datetime | None
    last_usage_at: datetime | None


@dataclass(frozen=True, slots=True)
class TokenAppendResult:
    transaction_id: int
    user_id: int
    kind: str
    amount: int
    balance_before: int
    balance_after: int
    idempotent_replay: bool
    mission_id: UUID | None = None
    conversation_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class ReplayEntry:
    transaction_id: int
    kind: str
    amount: int
    balance_before: int
    balance_after: int


@dataclass(frozen=True, slots=True)
class LedgerReplayReport:
    user_id: int
    transactions_count: int
    replayed: LedgerSnapshot
    stored: LedgerSnapshot
    chain_contiguous: bool
    broken_transaction_ids: list[int] = field(default_factory=list)

    @property
    def matches(self) -> bool:
        return self.chain_contiguous and self.replayed == self.stored


@dataclass(frozen=True, slots=True)
class TokenPackage:
    code: str
    title: str
    tokens: int
    price: int
    currency: str
    popular: bool = False

    @property
    def price_per_token(self) -> float:
        return round(self.price / self.tokens, 2)
