from app.economy.tokens.service import TokenLedgerService

__all__ = ["TokenLedgerService"]
