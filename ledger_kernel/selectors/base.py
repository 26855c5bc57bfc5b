"""
Read-side selector base.

Selectors query through the caller's session and hand back frozen DTOs or
plain aggregates, never live ORM rows, so nothing read here can be mutated
and flushed by accident.  They neither add, flush nor commit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    def __init__(self, session: Session):
        self.session = session
