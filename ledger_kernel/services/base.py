"""
Write-side service base.

A service is handed an open ``Session`` and the actor it writes on behalf
of.  It flushes so generated values and constraint violations surface
early, but the commit belongs to whoever opened the session: the sweep
driver, ``session_scope()`` or a test fixture.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the caller's session and the actor stamped on every write."""

    def __init__(self, session: Session, actor_id: UUID):
        self.session = session
        self.actor_id = actor_id
