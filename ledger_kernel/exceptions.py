"""
Typed Exception Hierarchy for the Ledger Kernel.

Every error has a TYPED exception class (catch by type, not message), a
``code`` attribute (machine-readable, API-safe), and structured attributes
(not just a message string).  The structured attributes are picked up by
``StructuredFormatter`` and emitted as ``exc_<name>`` log fields.

Example - WRONG way to handle errors:
    try:
        service.create(user_id, data)
    except Exception as e:
        if "interval" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way:
    try:
        service.create(user_id, data)
    except InvalidRecurrenceError as e:
        api_response(code=e.code, field=e.field)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidRecurrenceError
    |   +-- ReferenceNotFoundError
    |
    +-- RecurringDefinitionError
    |   +-- RecurringDefinitionNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- StorageError
        +-- StorageUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|--------------------------------------
Validation      | INVALID_RECURRENCE             | Bad frequency/interval/date ordering
                | REFERENCE_NOT_FOUND            | Account/category missing or not owned
----------------|--------------------------------|--------------------------------------
Definition      | RECURRING_DEFINITION_NOT_FOUND | Unknown id, or owned by another user
----------------|--------------------------------|--------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT       | Conditional cursor update lost a race
----------------|--------------------------------|--------------------------------------
Storage         | STORAGE_UNAVAILABLE            | Database unreachable / operation failed
                |                                | (retryable on the next sweep tick)
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation-related exceptions


class ValidationError(LedgerKernelError):
    """Base exception for input rejected at create/update time."""

    code: str = "VALIDATION_ERROR"


class InvalidRecurrenceError(ValidationError):
    """Recurrence fields are invalid (frequency, interval, date ordering)."""

    code: str = "INVALID_RECURRENCE"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid recurrence field '{field}': {reason}")


class ReferenceNotFoundError(ValidationError):
    """A referenced account or category does not exist for this user."""

    code: str = "REFERENCE_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Recurring definition exceptions


class RecurringDefinitionError(LedgerKernelError):
    """Base exception for recurring definition errors."""

    code: str = "RECURRING_DEFINITION_ERROR"


class RecurringDefinitionNotFoundError(RecurringDefinitionError):
    """Recurring definition with given ID was not found for this user."""

    code: str = "RECURRING_DEFINITION_NOT_FOUND"

    def __init__(self, definition_id: str):
        self.definition_id = definition_id
        super().__init__(f"Recurring definition not found: {definition_id}")


# Concurrency-related exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Storage-related exceptions


class StorageError(LedgerKernelError):
    """Base exception for storage-layer failures."""

    code: str = "STORAGE_ERROR"
    retryable: bool = False


class StorageUnavailableError(StorageError):
    """
    The database could not complete an operation.

    Retryable: the failed unit of work was rolled back in full, so the
    next sweep tick can simply try again.
    """

    code: str = "STORAGE_UNAVAILABLE"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")
