"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only queries over ledger transactions: history of a
    recurring definition, and date-range summaries for budgets and dashboards.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Budget "spent" figures and dashboard totals read the ledger by date range and
category only.  They are unaware of recurrence: materialized entries are
counted exactly like manual ones.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select

from ledger_kernel.domain.dtos import LedgerSummary, LedgerTransactionRecord
from ledger_kernel.models.transaction import LedgerTransaction
from ledger_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0.00")


class LedgerSelector(BaseSelector[LedgerTransaction]):
    """
    Selector for ledger transaction queries.

    Guarantees:
        - Read-only: No mutations are performed.
        - Multi-entry results are ordered by (date, id) for deterministic output.
    """

    def get(self, transaction_id: UUID) -> LedgerTransactionRecord | None:
        model = self.session.get(LedgerTransaction, transaction_id)
        return model.to_dto() if model is not None else None

    def list_for_definition(
        self, definition_id: UUID,
    ) -> list[LedgerTransactionRecord]:
        """All entries materialized from one recurring definition, oldest first."""
        rows = self.session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.recurring_definition_id == definition_id)
            .order_by(LedgerTransaction.date, LedgerTransaction.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def list_for_user(
        self,
        user_id: UUID,
        start: date | None = None,
        end: date | None = None,
        category_id: UUID | None = None,
    ) -> list[LedgerTransactionRecord]:
        """Entries for a user, optionally bounded by [start, end] and category."""
        stmt = select(LedgerTransaction).where(LedgerTransaction.user_id == user_id)
        if start is not None:
            stmt = stmt.where(LedgerTransaction.date >= start)
        if end is not None:
            stmt = stmt.where(LedgerTransaction.date <= end)
        if category_id is not None:
            stmt = stmt.where(LedgerTransaction.category_id == category_id)
        rows = self.session.execute(
            stmt.order_by(LedgerTransaction.date, LedgerTransaction.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def summarize(
        self,
        user_id: UUID,
        start: date,
        end: date,
        category_id: UUID | None = None,
    ) -> LedgerSummary:
        """
        Sum income and expenses over [start, end] inclusive.

        Returns:
            LedgerSummary with ``expenses`` as a positive magnitude.
        """
        income_expr = func.coalesce(
            func.sum(case((LedgerTransaction.amount > 0, LedgerTransaction.amount), else_=0)),
            0,
        )
        expense_expr = func.coalesce(
            func.sum(case((LedgerTransaction.amount < 0, -LedgerTransaction.amount), else_=0)),
            0,
        )

        stmt = select(
            income_expr, expense_expr, func.count(LedgerTransaction.id),
        ).where(
            LedgerTransaction.user_id == user_id,
            LedgerTransaction.date >= start,
            LedgerTransaction.date <= end,
        )
        if category_id is not None:
            stmt = stmt.where(LedgerTransaction.category_id == category_id)

        income, expenses, count = self.session.execute(stmt).one()

        return LedgerSummary(
            income=_to_money(income),
            expenses=_to_money(expenses),
            count=int(count),
        )


def _to_money(value) -> Decimal:
    if value is None:
        return _ZERO
    return Decimal(str(value)).quantize(_ZERO)
