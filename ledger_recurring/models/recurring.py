"""
ORM model for recurring definitions.

Contract:
    RecurringDefinitionModel persists one recurrence template and its cursor.
    ``to_dto()`` / ``from_dto()`` convert to and from the frozen
    ``RecurringDefinition`` snapshot.

Architecture: ledger_recurring/models.  Imports from ledger_kernel.db.base only.

Invariants enforced:
    - ``start_date <= next_occurrence_date``.
    - ``next_occurrence_date`` is written by the materializer only through a
      conditional UPDATE keyed on its previous value (compare-and-swap), and
      by explicit user edits through the definition service.
    - ``account_id`` is RESTRICT on delete: an account still scheduled by a
      definition cannot disappear underneath it.  ``category_id`` is SET NULL.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_recurring.domain.types import RecurringDefinition


class RecurringDefinitionModel(TrackedBase):
    """Persistent recurring definition with its materialization cursor."""

    __tablename__ = "recurring_definitions"

    __table_args__ = (
        Index("ix_recurring_definitions_user", "user_id"),
        Index("ix_recurring_definitions_account", "account_id"),
        Index("ix_recurring_definitions_next", "next_occurrence_date"),
        Index("ix_recurring_definitions_due", "is_active", "next_occurrence_date"),
        CheckConstraint('"interval" >= 1', name="ck_recurring_definitions_interval"),
        CheckConstraint(
            "next_occurrence_date >= start_date",
            name="ck_recurring_definitions_cursor",
        ),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_recurring_definitions_end",
        ),
        CheckConstraint(
            "frequency IN ('DAILY', 'WEEKLY', 'MONTHLY', 'YEARLY')",
            name="ck_recurring_definitions_frequency",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    description: Mapped[str] = mapped_column(String(256), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    frequency: Mapped[str] = mapped_column(String(50), nullable=False)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_occurrence_date: Mapped[date] = mapped_column(Date, nullable=False)
    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_subscription: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> RecurringDefinition:
        from ledger_recurring.domain.types import (
            RecurrenceFrequency,
            RecurringDefinition,
        )

        return RecurringDefinition(
            definition_id=self.id,
            user_id=self.user_id,
            description=self.description,
            amount=self.amount,
            frequency=RecurrenceFrequency(self.frequency),
            interval=self.interval,
            start_date=self.start_date,
            next_occurrence_date=self.next_occurrence_date,
            account_id=self.account_id,
            end_date=self.end_date,
            category_id=self.category_id,
            notes=self.notes,
            is_subscription=self.is_subscription,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(
        cls, dto: RecurringDefinition, created_by_id: UUID,
    ) -> RecurringDefinitionModel:
        return cls(
            id=dto.definition_id,
            user_id=dto.user_id,
            description=dto.description,
            notes=dto.notes,
            amount=dto.amount,
            frequency=dto.frequency.value,
            interval=dto.interval,
            start_date=dto.start_date,
            end_date=dto.end_date,
            next_occurrence_date=dto.next_occurrence_date,
            account_id=dto.account_id,
            category_id=dto.category_id,
            is_subscription=dto.is_subscription,
            is_active=dto.is_active,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
