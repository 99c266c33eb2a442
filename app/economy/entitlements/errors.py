class EntitlementError(Exception):
    pass


class RoleNotPermittedError(EntitlementError):
    def __init__(self, *, role: str, action: str) -> None:
        super().__init__(f"role={role} action={action}")
        self.role = role
        self.action = action


class EntitlementUnavailableError(EntitlementError):
    """Raised when the backing store fails while an admission is being evaluated."""

    def __init__(self, *, action: str) -> None:
        super().__init__(f"action={action}")
        self.action = action
