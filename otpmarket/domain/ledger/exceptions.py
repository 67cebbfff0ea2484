"""Ledger domain specific exceptions."""


class LedgerError(Exception):
    """Base class for ledger domain errors."""


class UserNotFound(LedgerError):
    """Raised when the balance owner does not exist."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InsufficientBalance(LedgerError):
    """Raised when a debit would take the balance below zero."""

    def __init__(self, required_cents: int, available_cents: int) -> None:
        super().__init__(
            f"Insufficient balance: {required_cents} required, {available_cents} available"
        )
        self.required_cents = required_cents
        self.available_cents = available_cents


class WithdrawalTooSmall(LedgerError):
    """Raised when a withdrawal is below the configured minimum."""

    def __init__(self, minimum_cents: int) -> None:
        super().__init__(f"Minimum withdrawal is {minimum_cents} cents")
        self.minimum_cents = minimum_cents


class InvalidAmount(LedgerError):
    """Raised for zero or negative monetary amounts."""
