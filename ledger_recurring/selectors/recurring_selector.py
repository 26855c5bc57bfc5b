"""
RecurringSelector -- read-only queries over recurring definitions.

Contract:
    Returns frozen ``RecurringDefinition`` snapshots, never ORM rows.  The
    sweep enumerates due definitions through ``list_due()``; the definition
    service lists a user's definitions through ``list_for_user()``.

Architecture: ledger_recurring/selectors.  Extends the kernel BaseSelector.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.selectors.base import BaseSelector

from ledger_recurring.domain.types import RecurringDefinition
from ledger_recurring.models.recurring import RecurringDefinitionModel


class RecurringSelector(BaseSelector[RecurringDefinitionModel]):
    """Selector for recurring definition queries."""

    def get(self, definition_id: UUID) -> RecurringDefinition | None:
        """Fresh snapshot of one definition, bypassing the identity map."""
        model = self.session.execute(
            select(RecurringDefinitionModel)
            .where(RecurringDefinitionModel.id == definition_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_due(
        self,
        as_of: date,
        user_id: UUID | None = None,
        is_subscription: bool | None = None,
        limit: int | None = None,
    ) -> list[RecurringDefinition]:
        """Active definitions whose cursor is on or before ``as_of``.

        Ordered by (next_occurrence_date, id) so the oldest backlog is swept
        first.  Exhausted definitions that are still flagged active ARE
        returned; the materializer deactivates them.
        """
        stmt = select(RecurringDefinitionModel).where(
            RecurringDefinitionModel.is_active == True,  # noqa: E712
            RecurringDefinitionModel.next_occurrence_date <= as_of,
        )
        if user_id is not None:
            stmt = stmt.where(RecurringDefinitionModel.user_id == user_id)
        if is_subscription is not None:
            stmt = stmt.where(RecurringDefinitionModel.is_subscription == is_subscription)
        stmt = stmt.order_by(
            RecurringDefinitionModel.next_occurrence_date,
            RecurringDefinitionModel.id,
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def list_for_user(
        self,
        user_id: UUID,
        is_subscription: bool | None = None,
        active: bool | None = None,
    ) -> list[RecurringDefinition]:
        """A user's definitions, most distant next occurrence first."""
        stmt = select(RecurringDefinitionModel).where(
            RecurringDefinitionModel.user_id == user_id,
        )
        if is_subscription is not None:
            stmt = stmt.where(RecurringDefinitionModel.is_subscription == is_subscription)
        if active is not None:
            stmt = stmt.where(RecurringDefinitionModel.is_active == active)
        stmt = stmt.order_by(
            RecurringDefinitionModel.next_occurrence_date.desc(),
            RecurringDefinitionModel.id,
        )

        rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]
