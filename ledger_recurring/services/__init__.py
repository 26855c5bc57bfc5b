"""Services for the recurring engine (write side and sweep)."""

from ledger_recurring.services.catch_up import CatchUpController
from ledger_recurring.services.definition_service import RecurringDefinitionService
from ledger_recurring.services.materializer import Materializer
from ledger_recurring.services.sweep import SweepDriver

__all__ = [
    "CatchUpController",
    "Materializer",
    "RecurringDefinitionService",
    "SweepDriver",
]
