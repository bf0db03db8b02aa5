"""Client for the external card-payment collaborator."""

from .api import PaymentClient, PaymentConfirmation

__all__ = ["PaymentClient", "PaymentConfirmation"]
