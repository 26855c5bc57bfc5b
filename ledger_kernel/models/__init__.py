"""Ledger models for the kernel."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.category import Category
from ledger_kernel.models.transaction import LedgerTransaction

__all__ = [
    "Account",
    "Category",
    "LedgerTransaction",
]
