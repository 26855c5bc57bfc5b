"""Database layer - engine, base classes, and types."""

from ledger_kernel.db.base import NAMING_CONVENTION, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    configure_sqlite,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "TrackedBase",
    "UUIDString",
    "configure_sqlite",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "is_postgres",
    "reset_engine",
    "session_scope",
]
