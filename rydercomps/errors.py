"""Error types raised by the competition core.

Every error carries a stable ``code`` so callers can tell a sold-out
competition from a closed one or a rejected payment without parsing messages.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class CompetitionError(Exception):
    """Base class for business-rule failures."""

    code = "competition_error"


class CapacityExceeded(CompetitionError):
    """Requested quantity exceeds the tickets still available."""

    code = "capacity_exceeded"

    def __init__(self, requested: int, remaining: int) -> None:
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Requested {requested} tickets but only {remaining} remain"
        )


class CompetitionClosed(CompetitionError):
    """Competition is inactive, outside its sale window, or already drawn."""

    code = "competition_closed"


class PaymentRejected(CompetitionError):
    """The payment collaborator did not confirm the payment."""

    code = "payment_rejected"


class InsufficientBalance(CompetitionError):
    """A debit would take a balance below zero."""

    code = "insufficient_balance"

    def __init__(self, balance: Decimal, requested: Decimal) -> None:
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient balance: {balance} available, {requested} requested"
        )


class PurchaseFailed(CompetitionError):
    """A purchase was rolled back. ``cause`` holds the underlying error."""

    code = "purchase_failed"

    def __init__(self, cause: BaseException, message: Optional[str] = None) -> None:
        self.cause = cause
        super().__init__(message or f"Purchase failed: {cause}")

    @property
    def reason(self) -> str:
        """Code of the underlying error, or ``"internal_error"``."""
        if isinstance(self.cause, CompetitionError):
            return self.cause.code
        return "internal_error"


class AlreadyDrawn(CompetitionError):
    code = "already_drawn"


class NoParticipants(CompetitionError):
    code = "no_participants"


class NotAuthorized(CompetitionError):
    code = "not_authorized"


__all__ = [
    "CompetitionError",
    "CapacityExceeded",
    "CompetitionClosed",
    "PaymentRejected",
    "InsufficientBalance",
    "PurchaseFailed",
    "AlreadyDrawn",
    "NoParticipants",
    "NotAuthorized",
]
