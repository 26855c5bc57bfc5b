"""
RecurringDefinitionService -- validated management of recurring definitions.

Contract:
    Create, update, delete, read and preview recurring definitions on behalf
    of a user.  All input is validated before it reaches the scheduling path:
    frequency in the closed set, ``interval >= 1``, ``end_date >= start_date``,
    account and category owned by the user.

Architecture: ledger_recurring/services.  Uses the kernel ReferenceValidator
    for ownership checks and the pure evaluator for previews.

Invariants enforced:
    - A new definition starts with ``next_occurrence_date = start_date`` and
      ``is_active = True``.
    - After an update the cursor is never before ``start_date`` and the
      definition is active exactly when the cursor is within ``end_date``.
      The cursor never moves backward, so no cycle is materialized twice.
    - Updates lock the row (SELECT ... FOR UPDATE) so they serialize with
      other edits.  The sweep does not lock; its compare-and-swap sees any
      committed cursor change.
    - Deleting a definition leaves its materialized transactions intact.
    - Flush only.  The caller owns commit/rollback.

Failure modes:
    - InvalidRecurrenceError on malformed fields.
    - ReferenceNotFoundError on a missing or foreign account/category.
    - RecurringDefinitionNotFoundError on unknown or foreign definitions.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import (
    InvalidRecurrenceError,
    RecurringDefinitionNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.reference_validator import ReferenceValidator

from ledger_recurring.domain.recurrence import (
    coerce_frequency,
    occurrences_between,
    validate_interval,
)
from ledger_recurring.domain.types import (
    RecurringDefinition,
    RecurringDefinitionInput,
    RecurringDefinitionUpdate,
)
from ledger_recurring.models.recurring import RecurringDefinitionModel
from ledger_recurring.selectors.recurring_selector import RecurringSelector

logger = get_logger("recurring.definitions")

MAX_DESCRIPTION_LENGTH = 256
_CENTS = Decimal("0.01")


class RecurringDefinitionService(BaseService[RecurringDefinitionModel]):
    """Management operations for one user's recurring definitions."""

    def __init__(self, session: Session, actor_id: UUID):
        super().__init__(session, actor_id)
        self._references = ReferenceValidator(session)
        self._selector = RecurringSelector(session)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(
        self, user_id: UUID, data: RecurringDefinitionInput,
    ) -> RecurringDefinition:
        """Validate ``data`` and persist a new active definition."""
        definition = _validated(
            RecurringDefinition(
                definition_id=uuid4(),
                user_id=user_id,
                description=data.description,
                amount=data.amount,
                frequency=data.frequency,
                interval=data.interval,
                start_date=data.start_date,
                next_occurrence_date=data.start_date,
                account_id=data.account_id,
                end_date=data.end_date,
                category_id=data.category_id,
                notes=data.notes,
                is_subscription=data.is_subscription,
                is_active=True,
            )
        )
        self._check_references(definition)

        model = RecurringDefinitionModel.from_dto(
            definition, created_by_id=self.actor_id,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "recurring_definition_created",
            extra={
                "definition_id": str(definition.definition_id),
                "user_id": str(user_id),
                "frequency": definition.frequency.value,
                "interval": definition.interval,
                "start_date": definition.start_date,
                "end_date": definition.end_date,
                "is_subscription": definition.is_subscription,
            },
        )
        return model.to_dto()

    def update(
        self,
        definition_id: UUID,
        user_id: UUID,
        changes: RecurringDefinitionUpdate,
    ) -> RecurringDefinition:
        """Apply a partial update, re-validating the merged definition."""
        model = self._load(definition_id, user_id, for_update=True)
        current = model.to_dto()
        fields = changes.changed_fields()

        merged = _validated(replace(current, **fields))
        merged = _reconcile_cursor(merged)
        self._check_references(merged)

        model.description = merged.description
        model.notes = merged.notes
        model.amount = merged.amount
        model.frequency = merged.frequency.value
        model.interval = merged.interval
        model.start_date = merged.start_date
        model.end_date = merged.end_date
        model.next_occurrence_date = merged.next_occurrence_date
        model.account_id = merged.account_id
        model.category_id = merged.category_id
        model.is_subscription = merged.is_subscription
        model.is_active = merged.is_active
        model.updated_by_id = self.actor_id
        self.session.flush()

        logger.info(
            "recurring_definition_updated",
            extra={
                "definition_id": str(definition_id),
                "user_id": str(user_id),
                "fields": sorted(fields),
                "next_occurrence_date": merged.next_occurrence_date,
                "is_active": merged.is_active,
            },
        )
        return merged

    def delete(self, definition_id: UUID, user_id: UUID) -> None:
        """Remove a definition.  Its materialized transactions are kept."""
        model = self._load(definition_id, user_id, for_update=True)
        self.session.delete(model)
        self.session.flush()
        logger.info(
            "recurring_definition_deleted",
            extra={"definition_id": str(definition_id), "user_id": str(user_id)},
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, definition_id: UUID, user_id: UUID) -> RecurringDefinition:
        definition = self._selector.get(definition_id)
        if definition is None or definition.user_id != user_id:
            raise RecurringDefinitionNotFoundError(str(definition_id))
        return definition

    def list_for_user(
        self, user_id: UUID, is_subscription: bool | None = None,
    ) -> list[RecurringDefinition]:
        return self._selector.list_for_user(user_id, is_subscription=is_subscription)

    def preview(
        self, definition_id: UUID, user_id: UUID, count: int,
    ) -> list[date]:
        """The next ``count`` occurrence dates from the cursor, within end_date."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        definition = self.get(definition_id, user_id)
        if not definition.is_active:
            return []
        return occurrences_between(
            definition.next_occurrence_date,
            definition.frequency,
            definition.interval,
            until=definition.end_date,
            limit=count,
            anchor_day=definition.anchor_day,
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load(
        self, definition_id: UUID, user_id: UUID, for_update: bool = False,
    ) -> RecurringDefinitionModel:
        stmt = select(RecurringDefinitionModel).where(
            RecurringDefinitionModel.id == definition_id,
            RecurringDefinitionModel.user_id == user_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        model = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise RecurringDefinitionNotFoundError(str(definition_id))
        return model

    def _check_references(self, definition: RecurringDefinition) -> None:
        self._references.require_account(definition.user_id, definition.account_id)
        self._references.require_category(definition.user_id, definition.category_id)


def _validated(definition: RecurringDefinition) -> RecurringDefinition:
    """Normalize and validate every user-supplied field of ``definition``."""
    description = (definition.description or "").strip()
    if not description:
        raise InvalidRecurrenceError("description", "must not be empty")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidRecurrenceError(
            "description", f"must be at most {MAX_DESCRIPTION_LENGTH} characters",
        )

    if not _is_calendar_date(definition.start_date):
        raise InvalidRecurrenceError("start_date", "must be a date without a time of day")
    if definition.end_date is not None:
        if not _is_calendar_date(definition.end_date):
            raise InvalidRecurrenceError("end_date", "must be a date without a time of day")
        if definition.end_date < definition.start_date:
            raise InvalidRecurrenceError(
                "end_date",
                f"{definition.end_date} is before start_date {definition.start_date}",
            )

    return replace(
        definition,
        description=description,
        amount=_to_money(definition.amount),
        frequency=coerce_frequency(definition.frequency),
        interval=validate_interval(definition.interval),
    )


def _is_calendar_date(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


def _reconcile_cursor(definition: RecurringDefinition) -> RecurringDefinition:
    """Keep the cursor within [start_date, ...) and derive ``is_active``."""
    cursor = max(definition.next_occurrence_date, definition.start_date)
    active = definition.end_date is None or cursor <= definition.end_date
    return replace(definition, next_occurrence_date=cursor, is_active=active)


def _to_money(amount: object) -> Decimal:
    try:
        value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    except InvalidOperation:
        raise InvalidRecurrenceError("amount", f"{amount!r} is not a number") from None
    if not value.is_finite():
        raise InvalidRecurrenceError("amount", f"{amount!r} is not a finite number")
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)
