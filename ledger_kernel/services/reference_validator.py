"""
ReferenceValidator -- existence and ownership checks for foreign keys.

Responsibility:
    Verifies that an account or category named by a recurring definition
    exists AND belongs to the acting user.  A row owned by someone else is
    reported exactly like a missing row, so ids of other users' data never
    leak through error messages.

Architecture position:
    Kernel > Services.  Read-only; called by the recurring definition
    service at create/update time so that invalid references never enter
    the scheduling path.

Failure modes:
    - ReferenceNotFoundError(entity_type, entity_id).
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import AccountInfo, CategoryInfo
from ledger_kernel.exceptions import ReferenceNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.category import Category

logger = get_logger("services.reference_validator")


class ReferenceValidator:
    """Ownership-aware lookups of accounts and categories."""

    def __init__(self, session: Session):
        self._session = session

    def require_account(self, user_id: UUID, account_id: UUID) -> AccountInfo:
        """Return the account or raise ReferenceNotFoundError."""
        account = self._session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.user_id == user_id,
            )
        ).scalar_one_or_none()

        if account is None:
            logger.info(
                "reference_rejected",
                extra={"entity_type": "Account", "entity_id": str(account_id)},
            )
            raise ReferenceNotFoundError("Account", str(account_id))

        return account.to_dto()

    def require_category(
        self, user_id: UUID, category_id: UUID | None,
    ) -> CategoryInfo | None:
        """Return the category (None passes through) or raise ReferenceNotFoundError."""
        if category_id is None:
            return None

        category = self._session.execute(
            select(Category).where(
                Category.id == category_id,
                Category.user_id == user_id,
            )
        ).scalar_one_or_none()

        if category is None:
            logger.info(
                "reference_rejected",
                extra={"entity_type": "Category", "entity_id": str(category_id)},
            )
            raise ReferenceNotFoundError("Category", str(category_id))

        return category.to_dto()
