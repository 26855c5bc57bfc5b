"""
Tests for ledger_recurring.services.sweep -- SweepDriver.

Validates tick() enumeration and counting, per-definition isolation, the
catch-up bound across ticks, exhaustion, graceful cancellation, start/stop
lifecycle and logging.

Uses file-backed SQLite with real ORM models.  Assertions read through a
fresh session so they see what the driver committed.
"""

import time
from datetime import date
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from ledger_config import EngineConfig, SweepConfig
from ledger_kernel.exceptions import StorageUnavailableError
from ledger_kernel.selectors import LedgerSelector

from ledger_recurring.domain.types import RecurringDefinitionUpdate
from ledger_recurring.models.recurring import RecurringDefinitionModel
from ledger_recurring.selectors import RecurringSelector
from ledger_recurring.services.materializer import Materializer
from ledger_recurring.services.sweep import SweepDriver


@pytest.fixture
def driver(session_factory, clock, test_actor_id):
    return SweepDriver(
        session_factory=session_factory,
        clock=clock,
        actor_id=test_actor_id,
        max_catch_up_iterations=24,
        tick_interval_seconds=0.05,
    )


def _entries(session_factory, definition_id):
    with session_factory() as s:
        return LedgerSelector(s).list_for_definition(definition_id)


def _definition(session_factory, definition_id):
    with session_factory() as s:
        return RecurringSelector(s).get(definition_id)


# =============================================================================
# tick() -- basic evaluation
# =============================================================================


class TestTickBasic:
    def test_no_definitions(self, driver):
        result = driver.tick()
        assert result.examined == 0
        assert result.materialized == 0
        assert result.failed == 0

    def test_as_of_defaults_to_clock_date(self, driver):
        assert driver.tick().as_of == date(2024, 1, 31)

    def test_due_definition_materialized(self, driver, session_factory, make_definition):
        definition = make_definition()
        result = driver.tick()

        assert result.examined == 1
        assert result.materialized == 1
        assert [e.date for e in _entries(session_factory, definition.definition_id)] == [
            date(2024, 1, 31),
        ]
        stored = _definition(session_factory, definition.definition_id)
        assert stored.next_occurrence_date == date(2024, 2, 29)

    def test_future_definition_not_examined(self, driver, make_definition):
        make_definition(start_date=date(2024, 2, 1))
        result = driver.tick()
        assert result.examined == 0

    def test_second_tick_same_day_is_noop(self, driver, session_factory, make_definition):
        definition = make_definition()
        driver.tick()
        result = driver.tick()

        assert result.examined == 0
        assert len(_entries(session_factory, definition.definition_id)) == 1

    def test_user_filter(self, driver, session_factory, make_definition, make_account):
        mine = make_definition()
        other_user = uuid4()
        other_account = make_account(other_user)
        theirs = make_definition(owner_id=other_user, account_id=other_account.id)

        result = driver.tick(user_id=other_user)

        assert result.examined == 1
        assert _entries(session_factory, mine.definition_id) == []
        assert len(_entries(session_factory, theirs.definition_id)) == 1

    def test_explicit_as_of(self, driver, session_factory, make_definition):
        definition = make_definition()
        result = driver.tick(as_of=date(2024, 3, 31))

        assert result.materialized == 3
        assert result.as_of == date(2024, 3, 31)


# =============================================================================
# End-to-end month-end schedule
# =============================================================================


class TestMonthEndSchedule:
    def test_monthly_from_jan_31_swept_each_month(
        self, driver, clock, session_factory, make_definition,
    ):
        definition = make_definition(amount="-50")

        for day in (date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)):
            clock.set_date(day)
            assert driver.tick().materialized == 1

        entries = _entries(session_factory, definition.definition_id)
        assert [e.date for e in entries] == [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30),
        ]
        assert all(e.amount == Decimal("-50.00") for e in entries)


# =============================================================================
# Catch-up bound and exhaustion
# =============================================================================


class TestBacklog:
    def test_bound_spreads_backlog_over_ticks(
        self, session_factory, clock, test_actor_id, make_definition,
    ):
        driver = SweepDriver(
            session_factory, clock=clock, actor_id=test_actor_id,
            max_catch_up_iterations=3,
        )
        definition = make_definition(start_date=date(2023, 9, 30))

        first = driver.tick()
        assert first.materialized == 3
        assert first.deferred == 1
        assert _definition(session_factory, definition.definition_id).is_due(date(2024, 1, 31))

        second = driver.tick()
        assert second.materialized == 2
        assert second.deferred == 0

        dates = [e.date for e in _entries(session_factory, definition.definition_id)]
        assert dates == [
            date(2023, 9, 30), date(2023, 10, 30), date(2023, 11, 30),
            date(2023, 12, 30), date(2024, 1, 30),
        ]

    def test_shortened_end_date_deactivates(
        self, driver, session, session_factory, make_definition, definition_service, user_id,
    ):
        definition = make_definition(frequency="DAILY", start_date=date(2024, 1, 30))
        driver.tick(as_of=date(2024, 1, 30))  # cursor -> Jan 31
        driver.tick(as_of=date(2024, 1, 31))  # cursor -> Feb 1

        definition_service.update(
            definition.definition_id, user_id,
            RecurringDefinitionUpdate(end_date=date(2024, 1, 31)),
        )
        session.commit()

        stored = _definition(session_factory, definition.definition_id)
        assert stored.is_active is False
        assert driver.tick(as_of=date(2024, 3, 1)).examined == 0

    def test_exhaustion_counted(self, driver, session_factory, make_definition):
        definition = make_definition(frequency="DAILY", start_date=date(2024, 2, 1))
        with session_factory() as s:
            s.execute(
                update(RecurringDefinitionModel)
                .where(RecurringDefinitionModel.id == definition.definition_id)
                .values(next_occurrence_date=date(2024, 3, 2), end_date=date(2024, 3, 1))
            )
            s.commit()

        result = driver.tick(as_of=date(2024, 3, 10))

        assert result.exhausted == 1
        assert result.materialized == 0
        assert _definition(session_factory, definition.definition_id).is_active is False
        assert driver.tick(as_of=date(2024, 12, 31)).examined == 0


# =============================================================================
# Isolation and errors
# =============================================================================


class TestIsolation:
    def test_failure_isolated_and_retried(
        self, driver, session_factory, make_definition, captured_logs,
    ):
        bad = make_definition(description="Bad")
        good = make_definition(description="Good")
        original = Materializer.materialize

        def flaky(self, definition, as_of):
            if definition.definition_id == bad.definition_id:
                raise RuntimeError("boom")
            return original(self, definition, as_of)

        with patch.object(Materializer, "materialize", flaky):
            result = driver.tick()

        assert result.examined == 2
        assert result.failed_definition_ids == (bad.definition_id,)
        assert result.materialized == 1
        assert _entries(session_factory, bad.definition_id) == []
        assert len(_entries(session_factory, good.definition_id)) == 1

        failures = [r for r in captured_logs() if r["message"] == "sweep_definition_failed"]
        assert len(failures) == 1
        assert failures[0]["definition_id"] == str(bad.definition_id)
        assert failures[0]["exc_type"] == "RuntimeError"

        retry = driver.tick()
        assert retry.examined == 1
        assert retry.failed == 0
        assert len(_entries(session_factory, bad.definition_id)) == 1

    def test_partial_catch_up_rolled_back_on_failure(
        self, driver, session_factory, make_definition,
    ):
        definition = make_definition(start_date=date(2023, 11, 30))
        original = Materializer.materialize
        calls = []

        def fail_on_third(self, snapshot, as_of):
            calls.append(snapshot.next_occurrence_date)
            if len(calls) == 3:
                raise StorageUnavailableError("materialize", "connection reset")
            return original(self, snapshot, as_of)

        with patch.object(Materializer, "materialize", fail_on_third):
            result = driver.tick()

        assert result.failed == 1
        assert _entries(session_factory, definition.definition_id) == []
        stored = _definition(session_factory, definition.definition_id)
        assert stored.next_occurrence_date == date(2023, 11, 30)

    def test_enumeration_failure_raises(self, clock, test_actor_id):
        class BrokenSession:
            def execute(self, *args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("server closed"))

            def close(self):
                pass

        driver = SweepDriver(BrokenSession, clock=clock, actor_id=test_actor_id)
        with pytest.raises(StorageUnavailableError):
            driver.tick()

    def test_definition_deleted_after_enumeration(
        self, session_factory, clock, test_actor_id, make_definition,
    ):
        definition = make_definition()
        created = []

        def factory():
            s = session_factory()
            created.append(s)
            if len(created) == 2:
                with session_factory() as other:
                    other.delete(other.get(RecurringDefinitionModel, definition.definition_id))
                    other.commit()
            return s

        driver = SweepDriver(factory, clock=clock, actor_id=test_actor_id)
        result = driver.tick()

        assert result.examined == 1
        assert result.failed == 0
        assert result.materialized == 0


# =============================================================================
# Cancellation and lifecycle
# =============================================================================


class TestLifecycle:
    def test_stop_between_definitions(
        self, session_factory, clock, test_actor_id, make_definition,
    ):
        first = make_definition(description="First", start_date=date(2024, 1, 1))
        second = make_definition(description="Second", start_date=date(2024, 1, 2))
        opened = []
        drivers = []

        def factory():
            opened.append(1)
            if len(opened) == 2:  # session for the first definition
                drivers[0].stop(timeout=0)
            return session_factory()

        drivers.append(SweepDriver(factory, clock=clock, actor_id=test_actor_id))
        result = drivers[0].tick()

        assert result.cancelled is True
        assert result.examined == 1
        assert len(_entries(session_factory, first.definition_id)) == 1
        assert _entries(session_factory, second.definition_id) == []

    def test_start_and_stop(self, driver, session_factory, make_definition):
        definition = make_definition()
        driver.start()
        try:
            assert driver.is_running
            deadline = time.monotonic() + 5
            while time.monotonic() < deadline:
                if _entries(session_factory, definition.definition_id):
                    break
                time.sleep(0.02)
        finally:
            driver.stop(timeout=5)

        assert not driver.is_running
        assert len(_entries(session_factory, definition.definition_id)) == 1

    def test_manual_tick_after_stop_runs(self, driver, session_factory, make_definition):
        definition = make_definition(start_date=date(2024, 1, 1))
        driver.stop(timeout=0)

        result = driver.tick(as_of=date(2024, 1, 1))

        assert result.cancelled is False
        assert result.examined == 1
        assert len(_entries(session_factory, definition.definition_id)) == 1

    def test_start_is_idempotent(self, driver):
        driver.start()
        thread = driver._thread
        driver.start()
        assert driver._thread is thread
        driver.stop(timeout=5)

    def test_from_config(self, session_factory, clock):
        actor = uuid4()
        config = EngineConfig(
            sweep=SweepConfig(tick_interval_seconds=5, max_catch_up_iterations=2, actor_id=actor),
        )
        driver = SweepDriver.from_config(config, session_factory, clock=clock)
        assert driver._actor_id == actor
        assert driver._max_catch_up == 2

    def test_rejects_bad_bound(self, session_factory):
        with pytest.raises(ValueError):
            SweepDriver(session_factory, max_catch_up_iterations=0)


# =============================================================================
# Logging
# =============================================================================


class TestSweepLogging:
    def test_sweep_events_carry_sweep_id(self, driver, make_definition, captured_logs):
        make_definition()
        result = driver.tick()

        logs = captured_logs()
        started = [r for r in logs if r["message"] == "sweep_started"]
        completed = [r for r in logs if r["message"] == "sweep_completed"]
        materialized = [r for r in logs if r["message"] == "occurrence_materialized"]

        assert started[0]["sweep_id"] == str(result.sweep_id)
        assert completed[0]["materialized"] == 1
        assert completed[0]["sweep_id"] == str(result.sweep_id)
        assert materialized[0]["sweep_id"] == str(result.sweep_id)
