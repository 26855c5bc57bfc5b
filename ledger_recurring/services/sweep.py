"""
SweepDriver -- periodic sweep over all due recurring definitions.

Contract:
    ``tick()`` enumerates due definitions and catches each one up in its own
    session and transaction.  ``start()`` / ``stop()`` run ``tick()`` on a
    background thread every ``tick_interval_seconds``.

Architecture: ledger_recurring/services.  Uses RecurringSelector for the
    enumeration, CatchUpController + Materializer for the work.

Invariants enforced:
    - All dates from the injected Clock (UTC).
    - Per-definition isolation: one definition's failure is rolled back,
      logged and counted; the sweep continues with the next one.
    - Graceful shutdown: the stop signal is checked between definitions, so
      every definition is either fully committed or untouched.
    - No locks.  Several drivers may sweep concurrently; the materializer's
      cursor compare-and-swap keeps each cycle single-entry.
"""

from __future__ import annotations

import threading
import time
from datetime import date
from typing import TYPE_CHECKING, Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import StorageUnavailableError
from ledger_kernel.logging_config import LogContext, get_logger

from ledger_recurring.domain.types import (
    CatchUpResult,
    MaterializationStatus,
    RecurringDefinition,
    SweepResult,
)
from ledger_recurring.selectors.recurring_selector import RecurringSelector
from ledger_recurring.services.catch_up import (
    DEFAULT_MAX_ITERATIONS,
    CatchUpController,
)
from ledger_recurring.services.materializer import Materializer

if TYPE_CHECKING:
    from ledger_config.schema import EngineConfig

logger = get_logger("recurring.sweep")


class SweepDriver:
    """In-process polling driver for recurring materialization.

    Contract:
        - ``tick()`` sweeps once and returns a SweepResult.
        - ``start()`` / ``stop()`` for background thread operation.
        - Respects the stop signal between definitions.

    Non-goals:
        - NOT a general job scheduler (one event kind only).
        - NOT distributed-coordinated: there is no leader election, and
          none is needed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        max_catch_up_iterations: int = DEFAULT_MAX_ITERATIONS,
        tick_interval_seconds: float = 60,
    ):
        if max_catch_up_iterations < 1:
            raise ValueError(
                f"max_catch_up_iterations must be at least 1, "
                f"got {max_catch_up_iterations}"
            )
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or uuid4()
        self._max_catch_up = max_catch_up_iterations
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ) -> SweepDriver:
        return cls(
            session_factory=session_factory,
            clock=clock,
            actor_id=config.sweep.actor_id,
            max_catch_up_iterations=config.sweep.max_catch_up_iterations,
            tick_interval_seconds=config.sweep.tick_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(
        self,
        as_of: date | None = None,
        user_id: UUID | None = None,
    ) -> SweepResult:
        """Run one sweep.

        Args:
            as_of: Reference date; defaults to today (UTC) from the clock.
            user_id: Restrict the sweep to one user's definitions.

        Raises:
            StorageUnavailableError: If the due definitions cannot be listed.
                Failures while processing a single definition never raise.
        """
        if not self.is_running:
            # A stop() left over from an earlier loop must not cancel a manual tick.
            self._stop_event.clear()

        sweep_id = uuid4()
        as_of = as_of or self._clock.today()
        started_at = self._clock.now()
        start = time.monotonic()

        with LogContext.bind(sweep_id=str(sweep_id), actor_id=str(self._actor_id)):
            logger.info(
                "sweep_started",
                extra={
                    "as_of": as_of,
                    "user_id": str(user_id) if user_id else None,
                    "max_catch_up_iterations": self._max_catch_up,
                },
            )

            due = self._list_due(as_of, user_id)

            results: list[CatchUpResult] = []
            failed: list[UUID] = []
            examined = 0
            cancelled = False

            for definition in due:
                if self._stop_event.is_set():
                    cancelled = True
                    logger.info(
                        "sweep_cancelled",
                        extra={"remaining": len(due) - examined},
                    )
                    break

                examined += 1
                result = self._sweep_definition(definition, as_of)
                if result is None:
                    failed.append(definition.definition_id)
                else:
                    results.append(result)

            sweep = SweepResult(
                sweep_id=sweep_id,
                as_of=as_of,
                examined=examined,
                materialized=sum(r.materialized_count for r in results),
                deferred=sum(1 for r in results if r.deferred),
                exhausted=sum(
                    1 for r in results
                    if r.final_status == MaterializationStatus.EXHAUSTED
                ),
                conflicts=sum(
                    1 for r in results
                    if r.final_status == MaterializationStatus.ALREADY_HANDLED
                ),
                failed_definition_ids=tuple(failed),
                cancelled=cancelled,
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start) * 1000),
                catch_up_results=tuple(results),
            )

            logger.info(
                "sweep_completed",
                extra={
                    "as_of": as_of,
                    "examined": sweep.examined,
                    "materialized": sweep.materialized,
                    "deferred": sweep.deferred,
                    "exhausted": sweep.exhausted,
                    "conflicts": sweep.conflicts,
                    "failed": sweep.failed,
                    "cancelled": sweep.cancelled,
                    "duration_ms": sweep.duration_ms,
                },
            )

        return sweep

    def start(self) -> None:
        """Start sweeping in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="recurring-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info("sweep_driver_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current definition to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
        logger.info("sweep_driver_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("sweep_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _list_due(
        self, as_of: date, user_id: UUID | None,
    ) -> list[RecurringDefinition]:
        session = self._session_factory()
        try:
            return RecurringSelector(session).list_due(as_of, user_id=user_id)
        except DBAPIError as exc:
            raise StorageUnavailableError("list_due", str(exc.orig)) from exc
        finally:
            session.close()

    def _sweep_definition(
        self, definition: RecurringDefinition, as_of: date,
    ) -> CatchUpResult | None:
        """Catch one definition up in its own transaction; None on failure."""
        session = self._session_factory()
        with LogContext.bind(definition_id=str(definition.definition_id)):
            try:
                snapshot = RecurringSelector(session).get(definition.definition_id)
                if snapshot is None:
                    # Deleted since enumeration.
                    session.rollback()
                    return CatchUpResult(
                        definition_id=definition.definition_id,
                        final_status=MaterializationStatus.NOT_DUE,
                        definition=definition,
                    )

                controller = CatchUpController(
                    Materializer(session, self._actor_id),
                    max_iterations=self._max_catch_up,
                )
                result = controller.catch_up(snapshot, as_of)
                session.commit()
                return result
            except Exception:
                session.rollback()
                logger.exception(
                    "sweep_definition_failed",
                    extra={"user_id": str(definition.user_id)},
                )
                return None
            finally:
                session.close()
