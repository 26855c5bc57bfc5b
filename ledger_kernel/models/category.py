"""
Module: ledger_kernel.models.category
Responsibility: ORM persistence for user categories (optional classification
    of ledger transactions and recurring definitions).
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import CategoryInfo


class Category(TrackedBase):
    """A user-defined category."""

    __tablename__ = "categories"

    __table_args__ = (
        Index("idx_category_user", "user_id"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(256), nullable=False)

    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="💡")

    # HEX #RRGGBB
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#ffffff")

    def to_dto(self) -> CategoryInfo:
        return CategoryInfo.from_model(self)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"
