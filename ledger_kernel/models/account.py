"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for user bank accounts -- the owning account
    of every ledger transaction and recurring definition.
Architecture position: Kernel > Models.  May import from db/base.py only.

Account management itself (create/rename/delete screens) lives outside this
repository; the rows matter here only as validated foreign keys.

Failure modes:
    - ReferenceNotFoundError (raised by ReferenceValidator) when a recurring
      definition names an account that is missing or owned by another user.
"""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import AccountInfo


class Account(TrackedBase):
    """A user's bank account."""

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(256), nullable=False)

    def to_dto(self) -> AccountInfo:
        return AccountInfo.from_model(self)

    def __repr__(self) -> str:
        return f"<Account {self.name}>"
