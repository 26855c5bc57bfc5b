"""
Structured JSON logging for the ledger kernel and the recurring engine.

Every record is one JSON object per line.  Sweep-scoped identifiers
(``sweep_id``, ``definition_id``, ...) live in ``LogContext`` and are merged
into every record emitted while they are bound, so a single sweep can be
followed across the driver, the catch-up loop and the materializer.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "set_level",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "sweep_id",
    "definition_id",
    "user_id",
)

_LOGGER_PREFIX = "ledger_kernel"

_context: ContextVar[dict[str, str]] = ContextVar("ledger_log_context", default={})


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


def _normalize(fields: dict[str, Any]) -> dict[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
    return {k: str(v) for k, v in fields.items() if v is not None}


class LogContext:
    """
    Context-local log fields (thread-safe and async-safe).

    The bound fields are an immutable snapshot per context: ``set()`` and
    ``bind()`` replace the snapshot, never mutate it, so a worker thread
    started inside a bound block cannot leak fields back to its parent.
    Values may be strings or UUIDs; None means "leave unchanged".
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Add or overwrite context fields for the rest of this context."""
        _context.set({**_context.get(), **_normalize(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a ``with`` block, then restore."""
        token = _context.set({**_context.get(), **_normalize(fields)})
        try:
            yield LogContext
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _to_json(obj: Any) -> Any:
    """Encode the domain values that appear in log payloads."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """
    Formats each log record as a single JSON line.

    Key order: ``ts``, ``level``, ``logger``, ``message``, bound context
    fields, then ``extra`` fields.  An extra field never overrides a context
    field.  Exceptions add ``exc_type``, ``exc_message``, ``traceback`` and,
    for ledger exceptions, ``exc_code`` plus one ``exc_<attr>`` per
    structured attribute.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS:
                payload.setdefault(key, val)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_to_json)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            fields.update(
                (f"exc_{k}", v) for k, v in vars(exc).items() if not k.startswith("_")
            )
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace (e.g. ``recurring.sweep``)."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``ledger_kernel`` logger (idempotent).

    ``level`` accepts a number or a name such as ``"DEBUG"``; the loggers do
    not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = level.upper()

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def set_level(level: int | str) -> None:
    """Change the ``ledger_kernel`` level after ``configure_logging()``."""
    if isinstance(level, str):
        level = level.upper()
    logging.getLogger(_LOGGER_PREFIX).setLevel(level)


def reset_logging() -> None:
    """Remove handlers and allow reconfiguration.  FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
