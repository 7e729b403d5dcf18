"""Unit tests for the session lifecycle."""

from datetime import time, timedelta

import pytest

from conftest import FakeClock, at
from workday_timer.errors import InvalidStateTransition, ValidationError
from workday_timer.models import SessionState
from workday_timer.mutations import (
    ManualPauseAdded,
    SessionCompleted,
    SessionCreated,
    SessionPaused,
    SessionResumed,
)
from workday_timer.projector import project
from workday_timer.state_machine import SessionStateMachine


@pytest.fixture
def machine(clock: FakeClock) -> SessionStateMachine:
    return SessionStateMachine(clock)


def running_machine(clock: FakeClock, arrival: str = "08:00") -> SessionStateMachine:
    machine = SessionStateMachine(clock)
    machine.create("alice", arrival, 8, 0)
    return machine


class TestCreate:
    """Setting up a workday."""

    def test_create_starts_running_from_now(self, machine, clock):
        mutation = machine.create("alice", "08:00", 8, 0)

        session = machine.session
        assert isinstance(mutation, SessionCreated)
        assert machine.state is SessionState.RUNNING
        assert session.is_active and session.is_running and not session.is_paused
        assert session.start_time == clock.now()
        assert session.current_session_start == clock.now()
        assert session.pause_start_time is None
        assert session.total_paused_ms == 0
        assert session.date == clock.now().date()
        assert session.arrival_time == time(8, 0)

    def test_create_seeds_time_since_arrival(self, machine, clock):
        clock.set_time(9, 30)
        machine.create("alice", "08:00", 8, 0)

        assert machine.session.total_worked == timedelta(hours=1, minutes=30)

    def test_arrival_in_the_future_belongs_to_yesterday(self, machine, clock):
        clock.set_time(2, 0)
        machine.create("alice", "22:00", 8, 0)

        stats = project(machine.session, clock.now())
        assert stats.arrival == at(22, day=-1)
        assert machine.session.total_worked == timedelta(hours=4)

    def test_arrival_equal_to_now_stays_today(self, machine, clock):
        machine.create("alice", "08:00", 8, 0)

        assert machine.session.total_worked_ms == 0
        assert project(machine.session, clock.now()).arrival == at(8)

    @pytest.mark.parametrize("minutes_later", [0, 1, 59, 240, 600])
    def test_worked_equals_time_since_arrival(self, machine, clock, minutes_later):
        clock.advance(minutes=minutes_later)
        machine.create("alice", "08:00", 8, 0)

        stats = project(machine.session, clock.now())
        assert stats.worked == clock.now() - at(8)
        assert stats.is_complete == (stats.worked >= timedelta(hours=8))

    @pytest.mark.parametrize(
        "arrival, hours, minutes",
        [
            (None, 8, 0),
            ("", 8, 0),
            ("25:00", 8, 0),
            ("08:75", 8, 0),
            ("eight", 8, 0),
            ("08:00", None, 0),
            ("08:00", 0, 0),
            ("08:00", -1, 0),
            ("08:00", 8, 60),
            ("08:00", 24, 1),
            ("08:00", 25, 0),
            ("08:00", 100_000_000, 0),
        ],
    )
    def test_invalid_setup_is_rejected_without_side_effects(self, machine, arrival, hours, minutes):
        with pytest.raises(ValidationError):
            machine.create("alice", arrival, hours, minutes)

        assert machine.session is None
        assert machine.state is SessionState.IDLE

    def test_minutes_only_requirement_is_allowed(self, machine):
        machine.create("alice", "08:00", 0, 30)

        assert machine.session.required_duration == timedelta(minutes=30)

    def test_full_day_requirement_is_allowed(self, machine, clock):
        machine.create("alice", "08:00", 24, 0)

        assert project(machine.session, clock.now()).leave_time == at(8, day=1)

    def test_create_while_active_fails(self, clock):
        machine = running_machine(clock)
        original = machine.session

        with pytest.raises(InvalidStateTransition):
            machine.create("alice", "09:00", 8, 0)
        assert machine.session is original

    def test_create_uses_injected_ids(self, clock):
        machine = SessionStateMachine(clock, id_factory=lambda: "session-1")
        machine.create("alice", "08:00", 8, 0)

        assert machine.session.id == "session-1"


class TestPauseResume:
    """Pausing and resuming fold elapsed wall time into the totals."""

    def test_pause_folds_worked_time(self, clock):
        machine = running_machine(clock)
        clock.set_time(12, 0)

        mutation = machine.pause()

        session = machine.session
        assert isinstance(mutation, SessionPaused)
        assert machine.state is SessionState.PAUSED
        assert session.total_worked == timedelta(hours=4)
        assert session.current_session_start is None
        assert session.pause_start_time == at(12)

    def test_resume_folds_paused_time(self, clock):
        machine = running_machine(clock)
        clock.set_time(12, 0)
        machine.pause()
        clock.set_time(12, 30)

        mutation = machine.resume()

        session = machine.session
        assert isinstance(mutation, SessionResumed)
        assert machine.state is SessionState.RUNNING
        assert session.total_paused == timedelta(minutes=30)
        assert session.total_worked == timedelta(hours=4)
        assert session.current_session_start == at(12, 30)
        assert session.pause_start_time is None

    def test_pause_then_immediate_resume_changes_no_totals(self, clock):
        machine = running_machine(clock)
        clock.set_time(11, 0)
        machine.pause()
        machine.resume()
        before = machine.session

        machine.pause()
        machine.resume()

        assert machine.session.total_worked_ms == before.total_worked_ms
        assert machine.session.total_paused_ms == before.total_paused_ms

    def test_pause_when_paused_fails(self, clock):
        machine = running_machine(clock)
        machine.pause()

        with pytest.raises(InvalidStateTransition):
            machine.pause()

    def test_resume_when_running_fails(self, clock):
        machine = running_machine(clock)

        with pytest.raises(InvalidStateTransition):
            machine.resume()

    def test_pause_when_idle_fails(self, machine):
        with pytest.raises(InvalidStateTransition):
            machine.pause()

    def test_clock_moving_backwards_never_shrinks_totals(self, clock):
        machine = running_machine(clock)
        clock.set_time(10, 0)
        machine.pause()
        machine.resume()
        worked = machine.session.total_worked_ms

        clock.set_time(9, 0)
        machine.pause()

        assert machine.session.total_worked_ms == worked

    def test_run_and_pause_are_never_both_set(self, clock):
        machine = running_machine(clock)
        for step in range(6):
            clock.advance(minutes=7)
            if machine.state is SessionState.RUNNING:
                machine.pause()
            else:
                machine.resume()
            session = machine.session
            assert not (session.is_running and session.is_paused)
            assert session.is_running == (session.current_session_start is not None)
            assert session.is_paused == (session.pause_start_time is not None)


class TestManualPause:
    """Crediting forgotten break time."""

    def test_adds_to_paused_total_while_paused(self, clock):
        machine = running_machine(clock)
        clock.set_time(12, 0)
        machine.pause()
        before = machine.session
        leave_before = project(before, clock.now()).leave_time

        mutation = machine.add_manual_pause(timedelta(minutes=15))

        after = machine.session
        assert isinstance(mutation, ManualPauseAdded)
        assert after.total_paused_ms - before.total_paused_ms == 15 * 60 * 1000
        assert after.total_worked_ms == before.total_worked_ms
        assert project(after, clock.now()).leave_time - leave_before == timedelta(minutes=15)
        assert machine.state is SessionState.PAUSED

    def test_allowed_while_running_without_changing_state(self, clock):
        machine = running_machine(clock)
        clock.set_time(10, 0)

        machine.add_manual_pause(timedelta(minutes=20))

        assert machine.state is SessionState.RUNNING
        assert machine.session.total_paused == timedelta(minutes=20)
        assert machine.session.current_session_start == at(8)

    @pytest.mark.parametrize("duration", [timedelta(0), timedelta(minutes=-5)])
    def test_non_positive_duration_is_rejected(self, clock, duration):
        machine = running_machine(clock)
        before = machine.session

        with pytest.raises(ValidationError):
            machine.add_manual_pause(duration)
        assert machine.session is before

    def test_rejected_when_idle(self, machine):
        with pytest.raises(InvalidStateTransition):
            machine.add_manual_pause(timedelta(minutes=5))

    @pytest.mark.parametrize(
        "duration", [timedelta(hours=24, milliseconds=1), timedelta(hours=100_000_000)]
    )
    def test_oversized_duration_is_rejected_without_side_effects(self, clock, duration):
        machine = running_machine(clock)
        clock.set_time(12, 0)
        machine.pause()
        before = machine.session

        with pytest.raises(ValidationError):
            machine.add_manual_pause(duration)

        assert machine.session is before
        assert project(machine.session, clock.now()).paused == timedelta(0)

    def test_full_day_of_pause_is_allowed(self, clock):
        machine = running_machine(clock)

        machine.add_manual_pause(timedelta(hours=24))

        assert project(machine.session, clock.now()).leave_time == at(16, day=1)


class TestComplete:
    """Finishing the workday."""

    def test_complete_from_running_folds_worked_time(self, clock):
        machine = running_machine(clock)
        clock.set_time(16, 0)

        mutation = machine.complete()

        finished = mutation.session
        assert isinstance(mutation, SessionCompleted)
        assert machine.session is None
        assert machine.state is SessionState.IDLE
        assert machine.last_completed == finished
        assert finished.total_worked == timedelta(hours=8)
        assert not (finished.is_active or finished.is_running or finished.is_paused)
        assert finished.current_session_start is None
        assert finished.pause_start_time is None

    def test_complete_from_paused_folds_paused_time(self, clock):
        machine = running_machine(clock)
        clock.set_time(12, 0)
        machine.pause()
        clock.set_time(12, 45)

        finished = machine.complete().session

        assert finished.total_worked == timedelta(hours=4)
        assert finished.total_paused == timedelta(minutes=45)

    @pytest.mark.parametrize("operation", ["pause", "resume", "complete"])
    def test_operations_after_complete_fail(self, clock, operation):
        machine = running_machine(clock)
        machine.complete()

        with pytest.raises(InvalidStateTransition):
            getattr(machine, operation)()

    def test_manual_pause_after_complete_fails(self, clock):
        machine = running_machine(clock)
        machine.complete()

        with pytest.raises(InvalidStateTransition):
            machine.add_manual_pause(timedelta(minutes=10))

    def test_create_after_complete_starts_fresh_cycle(self, clock):
        machine = running_machine(clock)
        first = machine.complete().session
        clock.set_time(13, 0)

        machine.create("alice", "13:00", 4, 0)

        assert machine.session.id != first.id
        assert machine.state is SessionState.RUNNING
        assert machine.session.total_worked_ms == 0


class TestRehydrate:
    """Adopting a persisted session after a restart."""

    def test_rehydrate_active_session(self, clock):
        source = running_machine(clock)
        clock.set_time(12, 0)
        source.pause()

        restored = SessionStateMachine(clock)
        restored.rehydrate(source.session)

        assert restored.state is SessionState.PAUSED
        restored.resume()
        assert restored.state is SessionState.RUNNING

    def test_rehydrate_rejects_out_of_range_totals(self, clock):
        source = running_machine(clock)
        broken = source.session.evolve(total_paused_ms=360_000_000_000_000)

        restored = SessionStateMachine(clock)
        with pytest.raises(ValidationError):
            restored.rehydrate(broken)
        assert restored.session is None

    def test_rehydrate_rejects_completed_session(self, clock):
        source = running_machine(clock)
        finished = source.complete().session

        with pytest.raises(InvalidStateTransition):
            SessionStateMachine(clock).rehydrate(finished)


class TestMutationFields:
    """Each transition names exactly the fields it touches."""

    def test_pause_fields(self, clock):
        machine = running_machine(clock)
        clock.set_time(12, 0)
        mutation = machine.pause()

        assert set(mutation.session_fields()) == {
            "is_running",
            "is_paused",
            "total_worked_ms",
            "current_session_start",
            "pause_start_time",
        }
        assert mutation.session_fields()["pause_start_time"] == at(12).isoformat()
        assert mutation.entry_fields() == {
            "total_worked_ms": 4 * 3600 * 1000,
            "status": mutation.ENTRY_STATUS,
        }

    def test_manual_pause_fields(self, clock):
        machine = running_machine(clock)
        mutation = machine.add_manual_pause(timedelta(minutes=5))

        assert mutation.session_fields() == {"total_paused_ms": 5 * 60 * 1000}
        assert mutation.entry_fields() == {"total_paused_ms": 5 * 60 * 1000}

    def test_complete_fields_carry_check_out(self, clock):
        machine = running_machine(clock)
        clock.set_time(16, 0)
        mutation = machine.complete()

        entry_fields = mutation.entry_fields()
        assert entry_fields["check_out"] == at(16)
        assert entry_fields["status"].value == "completed"
        assert mutation.session_fields()["is_active"] is False

    def test_created_fields_are_the_whole_record(self, clock):
        machine = SessionStateMachine(clock)
        mutation = machine.create("alice", "08:00", 8, 0)

        assert mutation.session_fields() == machine.session.to_record()
        assert mutation.entry_fields() == {}
