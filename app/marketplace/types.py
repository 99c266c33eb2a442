from __future__ import annotations

from dataclasses import dataclass

from app.db.models.conversations import Conversation
from app.db.models.missions import Mission
from app.economy.entitlements.types import EntitlementDecision
from app.economy.settlement.types import SettlementOutcome


@dataclass(frozen=True, slots=True)
class MissionDraft:
    title: str
    description: str
    city: str
    featured_listing: bool = False


@dataclass(frozen=True, slots=True)
class MissionCreationResult:
    decision: EntitlementDecision
    mission: Mission | None = None
    settlement: SettlementOutcome | None = None

    @property
    def created(self) -> bool:
        return self.mission is not None


@dataclass(frozen=True, slots=True)
class ConversationStartResult:
    conversation: Conversation | None
    created: bool
    decision: EntitlementDecision | None = None
    settlement: SettlementOutcome | None = None

    @property
    def denied(self) -> bool:
        return self.decision is not None and not self.decision.allowed
