"""
Materializer -- turns one due cycle of a definition into one ledger entry.

Contract:
    ``materialize(definition, as_of)`` takes a previously read snapshot and
    either creates exactly one LedgerTransaction dated at the snapshot's
    cursor (advancing the cursor by one cycle) or does nothing.

Architecture: ledger_recurring/services.  Uses the pure evaluator from
    ledger_recurring.domain.recurrence and the kernel LedgerTransaction model.

Invariants enforced:
    - At most one ledger entry per due cycle.  The cursor advance is a
      compare-and-swap keyed on the snapshot's ``next_occurrence_date``; the
      loser of a race matches zero rows and writes nothing.
    - Cursor advance and entry insert share one SAVEPOINT: both or neither.
    - The definition's amount, account and category are never written.
    - Flush only.  The caller owns commit/rollback.

Failure modes:
    - OptimisticLockError instead of ALREADY_HANDLED when constructed with
      ``raise_on_conflict=True``.
    - StorageUnavailableError (retryable) when the database rejects or drops
      the statement.  The savepoint is rolled back first.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from uuid import UUID

from sqlalchemy import or_, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import OptimisticLockError, StorageUnavailableError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.transaction import LedgerTransaction

from ledger_recurring.domain.recurrence import next_occurrence
from ledger_recurring.domain.types import (
    MaterializationResult,
    MaterializationStatus,
    RecurringDefinition,
)
from ledger_recurring.models.recurring import RecurringDefinitionModel

logger = get_logger("recurring.materializer")


class Materializer:
    """Exactly-once materialization of a single recurrence cycle.

    Non-goals:
        - Does NOT loop over missed cycles -- that is CatchUpController.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        actor_id: UUID,
        raise_on_conflict: bool = False,
    ):
        self._session = session
        self._actor_id = actor_id
        self._raise_on_conflict = raise_on_conflict

    def materialize(
        self, definition: RecurringDefinition, as_of: date,
    ) -> MaterializationResult:
        """Materialize the cycle at ``definition.next_occurrence_date``.

        Args:
            definition: Snapshot read earlier; its cursor is the expected
                value of the compare-and-swap.
            as_of: Reference date.  Cycles after it are not due.

        Returns:
            MaterializationResult with status MATERIALIZED, NOT_DUE,
            ALREADY_HANDLED or EXHAUSTED.
        """
        if not definition.is_active or definition.next_occurrence_date > as_of:
            return MaterializationResult(
                definition_id=definition.definition_id,
                status=MaterializationStatus.NOT_DUE,
                definition=definition,
            )

        if definition.is_past_end:
            return self._exhaust(definition)

        return self._advance(definition)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _cas_filter(self, definition: RecurringDefinition):
        return (
            RecurringDefinitionModel.id == definition.definition_id,
            RecurringDefinitionModel.next_occurrence_date
            == definition.next_occurrence_date,
            RecurringDefinitionModel.is_active == True,  # noqa: E712
        )

    def _advance(self, definition: RecurringDefinition) -> MaterializationResult:
        old_cursor = definition.next_occurrence_date
        new_cursor = next_occurrence(
            old_cursor,
            definition.frequency,
            definition.interval,
            anchor_day=definition.anchor_day,
        )

        savepoint = self._session.begin_nested()
        try:
            result = self._session.execute(
                update(RecurringDefinitionModel)
                .where(*self._cas_filter(definition))
                .values(
                    next_occurrence_date=new_cursor,
                    is_active=or_(
                        RecurringDefinitionModel.end_date.is_(None),
                        RecurringDefinitionModel.end_date >= new_cursor,
                    ),
                    updated_by_id=self._actor_id,
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                savepoint.rollback()
                logger.info(
                    "materialization_conflict",
                    extra={
                        "definition_id": str(definition.definition_id),
                        "expected_cursor": old_cursor,
                    },
                )
                if self._raise_on_conflict:
                    raise OptimisticLockError(
                        "RecurringDefinition", str(definition.definition_id),
                    )
                return MaterializationResult(
                    definition_id=definition.definition_id,
                    status=MaterializationStatus.ALREADY_HANDLED,
                    definition=definition,
                )

            entry = LedgerTransaction(
                user_id=definition.user_id,
                description=definition.description,
                amount=definition.amount,
                date=old_cursor,
                account_id=definition.account_id,
                category_id=definition.category_id,
                recurring_definition_id=definition.definition_id,
                created_by_id=self._actor_id,
            )
            self._session.add(entry)
            self._session.flush()
            record = entry.to_dto()
            savepoint.commit()
        except DBAPIError as exc:
            if savepoint.is_active:
                savepoint.rollback()
            raise StorageUnavailableError("materialize", str(exc.orig)) from exc

        advanced = replace(
            definition,
            next_occurrence_date=new_cursor,
            is_active=definition.end_date is None or new_cursor <= definition.end_date,
        )

        logger.info(
            "occurrence_materialized",
            extra={
                "definition_id": str(definition.definition_id),
                "transaction_id": str(record.id),
                "occurrence_date": old_cursor,
                "next_occurrence_date": new_cursor,
                "amount": record.amount,
            },
        )

        return MaterializationResult(
            definition_id=definition.definition_id,
            status=MaterializationStatus.MATERIALIZED,
            definition=advanced,
            occurrence_date=old_cursor,
            transaction=record,
        )

    def _exhaust(self, definition: RecurringDefinition) -> MaterializationResult:
        """Deactivate a definition whose cursor has passed its end date."""
        try:
            result = self._session.execute(
                update(RecurringDefinitionModel)
                .where(*self._cas_filter(definition))
                .values(is_active=False, updated_by_id=self._actor_id)
                .execution_options(synchronize_session=False)
            )
        except DBAPIError as exc:
            raise StorageUnavailableError("exhaust", str(exc.orig)) from exc

        if result.rowcount:
            logger.info(
                "definition_exhausted",
                extra={
                    "definition_id": str(definition.definition_id),
                    "next_occurrence_date": definition.next_occurrence_date,
                    "end_date": definition.end_date,
                },
            )

        return MaterializationResult(
            definition_id=definition.definition_id,
            status=MaterializationStatus.EXHAUSTED,
            definition=replace(definition, is_active=False),
        )
