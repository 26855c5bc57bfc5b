"""
CatchUpController -- bounded replay of missed cycles for one definition.

Contract:
    ``catch_up(definition, as_of)`` drives the Materializer repeatedly, oldest
    cycle first, until the definition is no longer due or the iteration bound
    is reached.  A definition still due at the bound is reported ``deferred``;
    the remaining cycles stay due and the next sweep continues from the
    persisted cursor.

Architecture: ledger_recurring/services.  Wraps Materializer.
"""

from __future__ import annotations

from datetime import date

from ledger_kernel.logging_config import get_logger

from ledger_recurring.domain.types import (
    CatchUpResult,
    MaterializationStatus,
    RecurringDefinition,
)
from ledger_recurring.services.materializer import Materializer

logger = get_logger("recurring.catch_up")

DEFAULT_MAX_ITERATIONS = 24


class CatchUpController:
    """Catches a single definition up to a reference date."""

    def __init__(
        self,
        materializer: Materializer,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        _check_bound(max_iterations)
        self._materializer = materializer
        self._max_iterations = max_iterations

    def catch_up(
        self,
        definition: RecurringDefinition,
        as_of: date,
        max_iterations: int | None = None,
    ) -> CatchUpResult:
        """Materialize every due cycle up to ``as_of``, bounded.

        Raises:
            ValueError: If ``max_iterations`` is given and below 1.
        """
        bound = self._max_iterations if max_iterations is None else max_iterations
        _check_bound(bound)

        current = definition
        transactions = []
        iterations = 0
        status = MaterializationStatus.NOT_DUE

        while iterations < bound:
            result = self._materializer.materialize(current, as_of)
            iterations += 1
            status = result.status
            current = result.definition
            if status != MaterializationStatus.MATERIALIZED:
                break
            transactions.append(result.transaction)

        deferred = (
            status == MaterializationStatus.MATERIALIZED
            and current.is_due(as_of)
        )
        if deferred:
            logger.info(
                "catch_up_deferred",
                extra={
                    "definition_id": str(definition.definition_id),
                    "materialized": len(transactions),
                    "next_occurrence_date": current.next_occurrence_date,
                    "max_iterations": bound,
                },
            )

        return CatchUpResult(
            definition_id=definition.definition_id,
            final_status=status,
            definition=current,
            transactions=tuple(transactions),
            iterations=iterations,
            deferred=deferred,
        )


def _check_bound(max_iterations: int) -> None:
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
