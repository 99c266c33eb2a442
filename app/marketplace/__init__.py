from app.marketplace.conversations import ConversationService
from app.marketplace.missions import MissionService

__all__ = ["ConversationService", "MissionService"]
