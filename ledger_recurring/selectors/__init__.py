"""Selectors for the recurring engine (read side)."""

from ledger_recurring.selectors.recurring_selector import RecurringSelector

__all__ = ["RecurringSelector"]
