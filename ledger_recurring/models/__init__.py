"""ORM models for the recurring engine."""

from ledger_recurring.models.recurring import RecurringDefinitionModel

__all__ = ["RecurringDefinitionModel"]
