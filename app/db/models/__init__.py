from app.db.models.conversations import Conversation
from app.db.models.missions import Mission
from app.db.models.outbox_events import OutboxEvent
from app.db.models.token_ledgers import TokenLedger
from app.db.models.token_transactions import TokenTransaction
from app.db.models.users import User

__all__ = [
    "Conversation",
    "Mission",
    "OutboxEvent",
    "TokenLedger",
    "TokenTransaction",
    "User",
]
