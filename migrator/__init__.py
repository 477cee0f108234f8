"""Ordered, ledger-tracked database migrations."""

__version__ = "1.0.0"
