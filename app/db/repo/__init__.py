from app.db.repo.conversations_repo import ConversationsRepo
from app.db.repo.missions_repo import MissionsRepo
from app.db.repo.outbox_events_repo import OutboxEventsRepo
from app.db.repo.token_ledgers_repo import TokenLedgersRepo
from app.db.repo.token_transactions_repo import TokenTransactionsRepo
from app.db.repo.users_repo import UsersRepo

__all__ = [
    "ConversationsRepo",
    "MissionsRepo",
    "OutboxEventsRepo",
    "TokenLedgersRepo",
    "TokenTransactionsRepo",
    "UsersRepo",
]
