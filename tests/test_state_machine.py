"""Tests for the pure attendance transition table."""

from datetime import date, datetime, timedelta, timezone

import pytest

from timeclock.exceptions import InvariantViolation
from timeclock.models import (
    AlreadyCheckedInToday,
    AlreadyCheckedOutToday,
    AlreadyCompletedToday,
    AttendanceRecord,
    AttendanceStatus,
    BreakRequiresActiveCheckIn,
    NotCheckedInYet,
    NotOnBreak,
    ResetNotAllowed,
    TransitionEvent,
)
from timeclock.services.attendance_state_machine import AttendanceStateMachine, resolve_day

DAY = date(2026, 3, 2)
E = TransitionEvent


def at(hour, minute=0):
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def machine():
    return AttendanceStateMachine()


@pytest.fixture
def fresh():
    return AttendanceRecord.fresh("w-1", DAY)


def run(machine, record, *steps):
    for event, when in steps:
        record = machine.apply(record, event, when)
    return record


def test_check_in_from_fresh_record(machine, fresh):
    record = machine.apply(fresh, E.CHECK_IN, at(9))

    assert record.status == AttendanceStatus.CHECKED_IN
    assert record.check_in_time == at(9)
    assert record.version == 1
    assert record.pending_sync is False


def test_second_check_in_is_rejected_and_record_unchanged(machine, fresh):
    checked_in = machine.apply(fresh, E.CHECK_IN, at(9))

    result = machine.apply(checked_in, E.CHECK_IN, at(10))

    assert isinstance(result, AlreadyCheckedInToday)
    assert result.record is checked_in
    assert checked_in.check_in_time == at(9)


def test_check_in_after_check_out_reports_completed_day(machine, fresh):
    done = run(machine, fresh, (E.CHECK_IN, at(9)), (E.CHECK_OUT, at(17)))

    result = machine.apply(done, E.CHECK_IN, at(18))

    assert isinstance(result, AlreadyCompletedToday)
    assert isinstance(result, AlreadyCheckedInToday)


def test_full_day_with_break(machine, fresh):
    record = run(
        machine,
        fresh,
        (E.CHECK_IN, at(9)),
        (E.BREAK_START, at(12)),
        (E.BREAK_END, at(12, 30)),
        (E.CHECK_OUT, at(17)),
    )

    assert record.status == AttendanceStatus.CHECKED_OUT
    assert record.break_time_total == pytest.approx(0.5)
    assert record.total_hours == pytest.approx(7.5)
    assert record.version == 4


def test_breaks_accumulate(machine, fresh):
    record = run(
        machine,
        fresh,
        (E.CHECK_IN, at(8)),
        (E.BREAK_START, at(10)),
        (E.BREAK_END, at(10, 15)),
        (E.BREAK_START, at(12)),
        (E.BREAK_END, at(12, 45)),
        (E.CHECK_OUT, at(16)),
    )

    assert record.break_time_total == pytest.approx(1.0)
    assert record.total_hours == pytest.approx(7.0)


def test_check_out_on_break_closes_the_break(machine, fresh):
    record = run(
        machine,
        fresh,
        (E.CHECK_IN, at(9)),
        (E.BREAK_START, at(12)),
        (E.CHECK_OUT, at(13)),
    )

    assert record.status == AttendanceStatus.CHECKED_OUT
    assert record.break_end_time == at(13)
    assert record.is_on_open_break is False
    assert record.break_time_total == pytest.approx(1.0)
    assert record.total_hours == pytest.approx(3.0)


def test_break_end_before_break_start_time_keeps_break_closed(machine, fresh):
    on_break = run(machine, fresh, (E.CHECK_IN, at(9)), (E.BREAK_START, at(12)))

    record = machine.apply(on_break, E.BREAK_END, at(12) - timedelta(minutes=5))

    assert record.status == AttendanceStatus.CHECKED_IN
    assert record.break_time_total == 0
    assert record.is_on_open_break is False


@pytest.mark.parametrize(
    "steps, event, rejection",
    [
        ([], E.CHECK_OUT, NotCheckedInYet),
        ([], E.FORCE_CHECK_OUT, NotCheckedInYet),
        ([], E.BREAK_START, BreakRequiresActiveCheckIn),
        ([], E.BREAK_END, NotOnBreak),
        ([], E.RESET_DAY, ResetNotAllowed),
        ([E.CHECK_IN], E.BREAK_END, NotOnBreak),
        ([E.CHECK_IN], E.RESET_DAY, ResetNotAllowed),
        ([E.CHECK_IN, E.BREAK_START], E.BREAK_START, BreakRequiresActiveCheckIn),
        ([E.CHECK_IN, E.BREAK_START], E.CHECK_IN, AlreadyCheckedInToday),
        ([E.CHECK_IN, E.CHECK_OUT], E.CHECK_OUT, AlreadyCheckedOutToday),
        ([E.CHECK_IN, E.CHECK_OUT], E.FORCE_CHECK_OUT, AlreadyCheckedOutToday),
        ([E.CHECK_IN, E.CHECK_OUT], E.BREAK_START, BreakRequiresActiveCheckIn),
    ],
)
def test_guarded_transitions_are_rejected(machine, fresh, steps, event, rejection):
    record = fresh
    for hour, step in enumerate(steps, start=9):
        record = machine.apply(record, step, at(hour))

    result = machine.apply(record, event, at(15))

    assert type(result) is rejection
    assert result.record == record


def test_force_check_out_from_break(machine, fresh):
    on_break = run(machine, fresh, (E.CHECK_IN, at(9)), (E.BREAK_START, at(11)))

    record = machine.apply(on_break, E.FORCE_CHECK_OUT, at(19))

    assert record.status == AttendanceStatus.CHECKED_OUT
    assert record.check_out_time == at(19)
    assert record.break_time_total == pytest.approx(8.0)
    assert record.total_hours == pytest.approx(2.0)


def test_reset_day_returns_fresh_record_with_next_version(machine, fresh):
    done = run(machine, fresh, (E.CHECK_IN, at(9)), (E.CHECK_OUT, at(17)))

    record = machine.apply(done, E.RESET_DAY, at(18))

    assert record.status == AttendanceStatus.NOT_CHECKED_IN
    assert record.check_in_time is None
    assert record.total_hours == 0
    assert record.version == done.version + 1
    assert machine.apply(record, E.CHECK_IN, at(18)).status == AttendanceStatus.CHECKED_IN


def test_allows_matches_transition_table(machine):
    assert machine.allows(AttendanceStatus.NOT_CHECKED_IN, E.CHECK_IN)
    assert machine.allows(AttendanceStatus.ON_BREAK, E.CHECK_OUT)
    assert not machine.allows(AttendanceStatus.CHECKED_OUT, E.CHECK_IN)
    assert not machine.allows(AttendanceStatus.NOT_CHECKED_IN, E.RESET_DAY)


def test_resolve_day_replaces_yesterdays_record():
    yesterday = AttendanceRecord(
        worker_id="w-1",
        date=DAY - timedelta(days=1),
        status=AttendanceStatus.CHECKED_IN,
        check_in_time=at(9) - timedelta(days=1),
        version=1,
    )

    record = resolve_day(yesterday, "w-1", DAY)

    assert record == AttendanceRecord.fresh("w-1", DAY)
    assert resolve_day(None, "w-1", DAY).version == 0


def test_resolve_day_keeps_todays_record():
    today = AttendanceRecord(
        worker_id="w-1", date=DAY, status=AttendanceStatus.CHECKED_IN, check_in_time=at(9), version=1
    )

    assert resolve_day(today, "w-1", DAY) is today


def test_validate_rejects_inconsistent_record():
    broken = AttendanceRecord(worker_id="w-1", date=DAY, status=AttendanceStatus.CHECKED_IN)

    with pytest.raises(InvariantViolation):
        broken.validate()
