class TokenLedgerError(Exception):
    pass


class TokenAmountValidationError(TokenLedgerError):
    pass


class InsufficientTokenBalanceError(TokenLedgerError):
    def __init__(self, *, required: int, available: int) -> None:
        super().__init__(f"required={required} available={available}")
        self.required = required
        self.available = available


class TokenIdempotencyConflictError(TokenLedgerError):
    pass


class TokenPackageNotFoundError(TokenLedgerError):
    pass


class TokenPackageQuantityError(TokenLedgerError):
    pass
