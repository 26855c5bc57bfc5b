"""
Module: ledger_kernel.db.base
Responsibility: Declarative base and column types shared by the ledger and
    the recurring engine.
Architecture position: Kernel > DB.  Lowest-level import target; every model
    file imports from here.  MUST NOT import from models/, services/,
    selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys generated client-side (uuid4), so a materializer can
      reference a row before flush.
    - Amounts are Numeric(12, 2); occurrence dates are Date (no time of day).
    - Every tracked row records who created and last modified it.  Rows
      written by the sweep carry the configured system actor.

Failure modes:
    - ValueError on bind if a UUID column is given a string that is not a UUID.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, MetaData, Numeric, String, func
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Explicit names for generated constraints and indexes.  Check constraints
# are named by hand in each model.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """
    UUID column: native ``uuid`` on PostgreSQL, ``VARCHAR(36)`` elsewhere.

    Accepts ``uuid.UUID`` or its string form on bind and always returns
    ``uuid.UUID`` on load, so DTO equality never depends on the backend.
    """

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = value if isinstance(value, UUID) else UUID(str(value))
        return value if dialect.name == "postgresql" else str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, UUID):
            return value
        return UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` primary key and ledger column types."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(12, 2),
        date: Date,
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base adding audit columns.

    ``created_at``/``updated_at`` come from the database clock;
    ``created_by_id`` is required and ``updated_by_id`` is stamped by every
    write after the insert (user edits and cursor advances alike).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
