"""
Attendance state machine.

Pure transition logic: given the current record of a day, an event and the
server-trusted instant, return the next record or a typed rejection. No I/O
happens here; the attendance service decides where the result is written.
"""

from datetime import date, datetime
from typing import Callable, Dict, Optional, Tuple, Union

from timeclock.models import (
    AttendanceRecord,
    AttendanceStatus,
    TransitionEvent,
    Rejection,
    AlreadyCheckedInToday,
    AlreadyCompletedToday,
    AlreadyCheckedOutToday,
    NotCheckedInYet,
    BreakRequiresActiveCheckIn,
    NotOnBreak,
    ResetNotAllowed,
)
from timeclock.shared.clock import hours_between

Outcome = Union[AttendanceRecord, Rejection]

S = AttendanceStatus
E = TransitionEvent


def resolve_day(
    stored: Optional[AttendanceRecord], worker_id: str, today: date
) -> AttendanceRecord:
    """Apply the day-boundary rule: anything not dated today is a fresh record"""
    if stored is None or stored.date != today:
        return AttendanceRecord.fresh(worker_id, today)
    return stored


def _check_in(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    return record.copy(status=S.CHECKED_IN, check_in_time=now)


def _break_start(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    return record.copy(status=S.ON_BREAK, break_start_time=now, break_end_time=None)


def _break_end(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    taken = hours_between(record.break_start_time, now)
    # a clock step backwards must not leave the break open
    ended = max(now, record.break_start_time) if record.break_start_time else now
    return record.copy(
        status=S.CHECKED_IN,
        break_end_time=ended,
        break_time_total=record.break_time_total + taken,
    )


def _check_out(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    if record.status == S.ON_BREAK:
        record = _break_end(record, now)
    worked = hours_between(record.check_in_time, now) - record.break_time_total
    return record.copy(
        status=S.CHECKED_OUT,
        check_out_time=now,
        total_hours=max(worked, 0.0),
    )


def _reset_day(record: AttendanceRecord, now: datetime) -> AttendanceRecord:
    return AttendanceRecord.fresh(record.worker_id, record.date)


TRANSITIONS: Dict[Tuple[AttendanceStatus, TransitionEvent], Callable] = {
    (S.NOT_CHECKED_IN, E.CHECK_IN): _check_in,
    (S.CHECKED_IN, E.BREAK_START): _break_start,
    (S.ON_BREAK, E.BREAK_END): _break_end,
    (S.CHECKED_IN, E.CHECK_OUT): _check_out,
    (S.ON_BREAK, E.CHECK_OUT): _check_out,
    (S.CHECKED_IN, E.FORCE_CHECK_OUT): _check_out,
    (S.ON_BREAK, E.FORCE_CHECK_OUT): _check_out,
    (S.CHECKED_OUT, E.RESET_DAY): _reset_day,
}


def _rejection_for(record: AttendanceRecord, event: TransitionEvent) -> Rejection:
    status = record.status
    if event == E.CHECK_IN:
        if status == S.CHECKED_OUT:
            return AlreadyCompletedToday(record)
        return AlreadyCheckedInToday(record)
    if event in (E.CHECK_OUT, E.FORCE_CHECK_OUT):
        if status == S.CHECKED_OUT:
            return AlreadyCheckedOutToday(record)
        return NotCheckedInYet(record)
    if event == E.BREAK_START:
        return BreakRequiresActiveCheckIn(record)
    if event == E.BREAK_END:
        return NotOnBreak(record)
    return ResetNotAllowed(record)


class AttendanceStateMachine:
    """Closed set of guarded transitions over a day's attendance record"""

    transitions = TRANSITIONS

    def allows(self, status: AttendanceStatus, event: TransitionEvent) -> bool:
        return (status, event) in self.transitions

    def apply(
        self, record: AttendanceRecord, event: TransitionEvent, now: datetime
    ) -> Outcome:
        """Return the next record (version + 1) or the rejection for this event"""
        handler = self.transitions.get((record.status, event))
        if handler is None:
            return _rejection_for(record, event)

        next_record = handler(record, now)
        return next_record.copy(version=record.version + 1, pending_sync=False).validate()
