"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.base import BaseService
from ledger_kernel.services.reference_validator import ReferenceValidator

__all__ = [
    "BaseService",
    "ReferenceValidator",
]
