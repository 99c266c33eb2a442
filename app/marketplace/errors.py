class MarketplaceError(Exception):
    pass


class ParticipantNotFoundError(MarketplaceError):
    pass


class SelfConversationError(MarketplaceError):
    pass


class MissionNotFoundError(MarketplaceError):
    pass
