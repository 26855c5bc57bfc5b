"""
DTOs -- Pure domain data transfer objects for the ledger.

Responsibility:
    Immutable snapshots of accounts, categories and ledger transactions, plus
    the explicit aggregate struct returned by ledger summaries.  Services and
    selectors return these, never ORM instances.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the model / selector layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.category import Category as CategoryModel
    from ledger_kernel.models.transaction import (
        LedgerTransaction as LedgerTransactionModel,
    )


@dataclass(frozen=True)
class AccountInfo:
    """Immutable snapshot of a bank account owned by a user."""

    id: UUID
    user_id: UUID
    name: str

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(id=model.id, user_id=model.user_id, name=model.name)


@dataclass(frozen=True)
class CategoryInfo:
    """Immutable snapshot of a spending/income category owned by a user."""

    id: UUID
    user_id: UUID
    name: str
    icon: str
    color: str

    @classmethod
    def from_model(cls, model: CategoryModel) -> CategoryInfo:
        return cls(
            id=model.id,
            user_id=model.user_id,
            name=model.name,
            icon=model.icon,
            color=model.color,
        )


@dataclass(frozen=True)
class LedgerTransactionRecord:
    """
    Immutable snapshot of one ledger entry.

    ``recurring_definition_id`` is set only for entries materialized by the
    recurring engine.  It is a weak back-reference: the definition may have
    been deleted since.
    """

    id: UUID
    user_id: UUID
    description: str
    amount: Decimal
    date: date
    account_id: UUID
    category_id: UUID | None = None
    recurring_definition_id: UUID | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurring_definition_id is not None

    @classmethod
    def from_model(cls, model: LedgerTransactionModel) -> LedgerTransactionRecord:
        return cls(
            id=model.id,
            user_id=model.user_id,
            description=model.description,
            amount=model.amount,
            date=model.date,
            account_id=model.account_id,
            category_id=model.category_id,
            recurring_definition_id=model.recurring_definition_id,
        )


@dataclass(frozen=True)
class LedgerSummary:
    """
    Aggregate of ledger entries over a date range.

    Named numeric fields replace open-ended key-value rows so that budget and
    report consumers cannot silently misspell a key.

    ``expenses`` is reported as a positive magnitude.
    """

    income: Decimal
    expenses: Decimal
    count: int

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses
