"""
ledger_recurring.domain -- Pure types and recurrence evaluation.

ZERO I/O.  All types are frozen dataclasses.
"""

from ledger_recurring.domain.recurrence import (
    add_months,
    add_years,
    coerce_frequency,
    next_occurrence,
    occurrences_between,
)
from ledger_recurring.domain.types import (
    UNSET,
    CatchUpResult,
    DefinitionState,
    MaterializationResult,
    MaterializationStatus,
    RecurrenceFrequency,
    RecurringDefinition,
    RecurringDefinitionInput,
    RecurringDefinitionUpdate,
    SweepResult,
)

__all__ = [
    "UNSET",
    "CatchUpResult",
    "DefinitionState",
    "MaterializationResult",
    "MaterializationStatus",
    "RecurrenceFrequency",
    "RecurringDefinition",
    "RecurringDefinitionInput",
    "RecurringDefinitionUpdate",
    "SweepResult",
    "add_months",
    "add_years",
    "coerce_frequency",
    "next_occurrence",
    "occurrences_between",
]
