"""Eventy - client-side session and transaction core for the ticket marketplace."""

__version__ = "0.1.0"
