"""Ticket ledger, instant wins and fair draws for prize competitions."""

__version__ = "0.1.0"
