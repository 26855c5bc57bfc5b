"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for ledger transactions -- the single source
    of truth for budgets, reports and dashboard summaries.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Append-only from the recurring engine's perspective: the engine inserts
      rows and never updates or deletes them.
    - Weak back-reference: ``recurring_definition_id`` is a plain indexed
      column with NO foreign-key constraint.  Deleting a recurring definition
      neither cascades into history nor fails because history exists; the
      reference simply dangles.
    - Amounts are Numeric(12, 2); negative = expense, positive = income.

Failure modes:
    - IntegrityError if account_id does not reference an existing account.
"""

import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import LedgerTransactionRecord


class LedgerTransaction(TrackedBase):
    """
    One ledger entry.

    Entries materialized by the recurring engine are indistinguishable from
    manually entered ones except for ``recurring_definition_id``.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        Index("idx_ledger_tx_user", "user_id"),
        Index("idx_ledger_tx_account", "account_id"),
        Index("idx_ledger_tx_category", "category_id"),
        Index("idx_ledger_tx_date", "date"),
        Index("idx_ledger_tx_recurring", "recurring_definition_id", "date"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    description: Mapped[str] = mapped_column(String(256), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Weak reference only -- see module docstring.
    recurring_definition_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def to_dto(self) -> LedgerTransactionRecord:
        return LedgerTransactionRecord.from_model(self)

    def __repr__(self) -> str:
        return f"<LedgerTransaction {self.date} {self.amount}>"
