"""
ledger_recurring.domain.types -- Pure frozen dataclasses for the engine.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections, following the DTO convention of the kernel.

A ``RecurringDefinition`` is a *snapshot*: the materializer uses the
snapshot's ``next_occurrence_date`` as the expected value of its
compare-and-swap, so a stale snapshot can never produce a second entry for
the same cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.dtos import LedgerTransactionRecord


# =============================================================================
# Enums
# =============================================================================


class RecurrenceFrequency(str, Enum):
    """Closed set of recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class MaterializationStatus(str, Enum):
    """Outcome of one materializer invocation."""

    MATERIALIZED = "materialized"  # One ledger entry created, cursor advanced
    NOT_DUE = "not_due"  # Inactive, or cursor is after as_of
    ALREADY_HANDLED = "already_handled"  # Lost the cursor compare-and-swap
    EXHAUSTED = "exhausted"  # Cursor passed end_date; marked inactive


class DefinitionState(str, Enum):
    """Engine-level state of a definition at a given reference date."""

    DUE = "due"
    NOT_DUE = "not_due"
    EXHAUSTED = "exhausted"


# =============================================================================
# Definition snapshots and inputs
# =============================================================================


@dataclass(frozen=True)
class RecurringDefinition:
    """Immutable snapshot of a recurring definition row."""

    definition_id: UUID
    user_id: UUID
    description: str
    amount: Decimal
    frequency: RecurrenceFrequency
    interval: int
    start_date: date
    next_occurrence_date: date
    account_id: UUID
    end_date: date | None = None
    category_id: UUID | None = None
    notes: str | None = None
    is_subscription: bool = False
    is_active: bool = True

    @property
    def anchor_day(self) -> int:
        """Day-of-month targeted by MONTHLY/YEARLY steps."""
        return self.start_date.day

    @property
    def is_past_end(self) -> bool:
        return self.end_date is not None and self.next_occurrence_date > self.end_date

    def state(self, as_of: date) -> DefinitionState:
        if not self.is_active or self.is_past_end:
            return DefinitionState.EXHAUSTED
        if self.next_occurrence_date > as_of:
            return DefinitionState.NOT_DUE
        return DefinitionState.DUE

    def is_due(self, as_of: date) -> bool:
        return self.state(as_of) == DefinitionState.DUE


@dataclass(frozen=True)
class RecurringDefinitionInput:
    """Fields supplied by the user when creating a definition."""

    description: str
    amount: Decimal
    frequency: RecurrenceFrequency | str
    start_date: date
    account_id: UUID
    interval: int = 1
    end_date: date | None = None
    category_id: UUID | None = None
    notes: str | None = None
    is_subscription: bool = False


class _Unset:
    """Marker for "field not supplied" in partial updates."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@dataclass(frozen=True)
class RecurringDefinitionUpdate:
    """
    Partial update of a definition.

    Fields left as ``UNSET`` are unchanged.  ``None`` is a real value for the
    nullable fields (``end_date=None`` removes the end date).
    """

    description: str | _Unset = UNSET
    amount: Decimal | _Unset = UNSET
    frequency: RecurrenceFrequency | str | _Unset = UNSET
    interval: int | _Unset = UNSET
    start_date: date | _Unset = UNSET
    end_date: date | None | _Unset = UNSET
    account_id: UUID | _Unset = UNSET
    category_id: UUID | None | _Unset = UNSET
    notes: str | None | _Unset = UNSET
    is_subscription: bool | _Unset = UNSET

    def changed_fields(self) -> dict[str, object]:
        return {
            name: value
            for name, value in self.__dict__.items()
            if value is not UNSET
        }


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class MaterializationResult:
    """
    Result of one materializer invocation.

    ``definition`` is the snapshot to use for the next attempt: the advanced
    snapshot after MATERIALIZED, otherwise the input snapshot (deactivated
    after EXHAUSTED).
    """

    definition_id: UUID
    status: MaterializationStatus
    definition: RecurringDefinition
    occurrence_date: date | None = None
    transaction: LedgerTransactionRecord | None = None


@dataclass(frozen=True)
class CatchUpResult:
    """Result of catching one definition up to ``as_of``."""

    definition_id: UUID
    final_status: MaterializationStatus
    definition: RecurringDefinition
    transactions: tuple[LedgerTransactionRecord, ...] = ()
    iterations: int = 0
    deferred: bool = False  # Bound hit while still due

    @property
    def materialized_count(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True)
class SweepResult:
    """Result of one sweep over all due definitions."""

    sweep_id: UUID
    as_of: date
    examined: int = 0
    materialized: int = 0
    deferred: int = 0
    exhausted: int = 0
    conflicts: int = 0
    failed_definition_ids: tuple[UUID, ...] = ()
    cancelled: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    catch_up_results: tuple[CatchUpResult, ...] = field(default=(), repr=False)

    @property
    def failed(self) -> int:
        return len(self.failed_definition_ids)
