"""Tests for the history ledger and its mirroring into the store."""

from datetime import timedelta

import pytest

from conftest import at
from workday_timer.errors import InvalidStateTransition, NotFoundError, ValidationError
from workday_timer.ledger import EntryLedger
from workday_timer.models import Entry, EntryStatus
from workday_timer.persistence import PersistenceQueue
from workday_timer.state_machine import SessionStateMachine


async def _setup(adapter, clock, owner="alice"):
    failures = []
    machine = SessionStateMachine(clock)
    machine.create(owner, "08:00", 8, 0)
    await adapter.create_session(machine.session.to_record())
    queue = PersistenceQueue(on_error=lambda intent, exc: failures.append((intent, exc)))
    ledger = EntryLedger(owner, adapter, queue)
    return machine, ledger, queue, failures


@pytest.mark.asyncio
async def test_create_for_session_mirrors_session_totals(adapter, clock):
    clock.set_time(9, 0)
    machine, ledger, queue, failures = await _setup(adapter, clock)

    entry = ledger.create_for_session(machine.session)
    await queue.drain()

    assert entry.status is EntryStatus.ACTIVE
    assert entry.check_in == at(8)
    assert entry.date == at(8)
    assert entry.check_out is None
    assert entry.total_worked == timedelta(hours=1)
    assert entry.session_id == machine.session.id
    stored = await adapter.load_entries("alice")
    assert stored == [entry]
    assert failures == []
    await queue.close()


@pytest.mark.asyncio
async def test_second_open_entry_for_session_is_rejected(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    ledger.create_for_session(machine.session)

    with pytest.raises(InvalidStateTransition):
        ledger.create_for_session(machine.session)
    await queue.close()


@pytest.mark.asyncio
async def test_update_is_idempotent(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)
    change = {"total_worked_ms": 3_600_000, "status": "paused"}

    first = ledger.update(entry.id, change)
    second = ledger.update(entry.id, change)
    await queue.drain()

    assert first == second
    assert second.status is EntryStatus.PAUSED
    assert await adapter.load_entries("alice") == [second]
    await queue.close()


@pytest.mark.asyncio
async def test_completion_sets_check_out_and_freezes_entry(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)
    completion = {"status": EntryStatus.COMPLETED, "check_out": at(16), "total_worked_ms": 1}

    done = ledger.update(entry.id, completion)

    assert done.check_out == at(16)
    assert ledger.update(entry.id, completion) == done
    with pytest.raises(InvalidStateTransition):
        ledger.update(entry.id, {"total_worked_ms": 5})
    with pytest.raises(InvalidStateTransition):
        ledger.update(entry.id, {"status": "active"})
    renamed = ledger.rename(entry.id, "Release day")
    assert renamed.name == "Release day"
    assert renamed.status is EntryStatus.COMPLETED
    await queue.close()


@pytest.mark.asyncio
async def test_completed_status_requires_check_out(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)

    with pytest.raises(ValidationError):
        ledger.update(entry.id, {"status": "completed"})
    with pytest.raises(ValidationError):
        ledger.update(entry.id, {"check_out": at(16)})
    assert ledger.get(entry.id) == entry
    await queue.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [{"bogus": 1}, {"status": "finished"}, {"total_worked_ms": -1}, {"total_paused_ms": "5"}],
)
async def test_invalid_updates_are_rejected(adapter, clock, fields):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)

    with pytest.raises(ValidationError):
        ledger.update(entry.id, fields)
    await queue.close()


@pytest.mark.asyncio
async def test_rename_trims_and_clears(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)

    assert ledger.rename(entry.id, "  Sprint review  ").name == "Sprint review"
    assert ledger.rename(entry.id, "   ").name is None
    await queue.drain()
    assert (await adapter.load_entries("alice"))[0].name is None
    await queue.close()


@pytest.mark.asyncio
async def test_delete_removes_entry_only(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)

    ledger.delete(entry.id)
    await queue.drain()

    assert ledger.list() == []
    assert await adapter.load_entries("alice") == []
    assert await adapter.load_active_session("alice", clock.now().date()) == machine.session
    await queue.close()


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(adapter, clock):
    _, ledger, queue, _ = await _setup(adapter, clock)

    with pytest.raises(NotFoundError):
        ledger.update("missing", {"name": "x"})
    with pytest.raises(NotFoundError):
        ledger.rename("missing", "x")
    with pytest.raises(NotFoundError):
        ledger.delete("missing")
    await queue.close()


@pytest.mark.asyncio
async def test_list_is_newest_first_and_reloads_in_order(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    first = ledger.create_for_session(machine.session)
    ledger.update(first.id, {"status": "completed", "check_out": at(9)})
    machine.complete()
    clock.set_time(10, 0)
    machine.create("alice", "10:00", 2, 0)
    await adapter.create_session(machine.session.to_record())
    second = ledger.create_for_session(machine.session)
    await queue.drain()

    assert [entry.id for entry in ledger.list()] == [second.id, first.id]
    reloaded = EntryLedger("alice", adapter, queue)
    await reloaded.load()
    assert [entry.id for entry in reloaded.list()] == [second.id, first.id]
    assert reloaded.find_open_entry(machine.session.id) == second
    assert reloaded.find_open_entry(first.session_id) is None
    await queue.close()


@pytest.mark.asyncio
async def test_list_filters_by_owner(adapter, clock):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    ledger.create_for_session(machine.session)

    assert ledger.list("bob") == []
    assert len(ledger.list("alice")) == 1
    await queue.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes",
    [
        {"status": "completed", "check_out": None},
        {"status": "active", "check_out": at(16).isoformat()},
    ],
)
async def test_stored_entry_breaking_check_out_rule_is_rejected(adapter, clock, changes):
    machine, ledger, queue, _ = await _setup(adapter, clock)
    entry = ledger.create_for_session(machine.session)
    await queue.close()
    record = {**entry.to_record(), **changes}

    with pytest.raises(ValidationError):
        Entry.from_record(record)
