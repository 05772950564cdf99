"""API routers package."""

from src.routers import accounts, bank, journal, reconciliation

__all__ = [
    "accounts",
    "bank",
    "journal",
    "reconciliation",
]
