from typing import Any, Dict, Optional

from timeclock.models.attendance import AttendanceRecord


class Rejection:
    """A transition that was refused; the record it was checked against is unchanged"""

    code = "rejected"
    default_message = "Transition rejected"

    def __init__(self, record: AttendanceRecord, message: Optional[str] = None):
        self.record = record
        self.message = message or self.default_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "data": self.record.to_dict(),
        }

    def __eq__(self, other):
        return (
            type(self) is type(other)
            and self.record == other.record
            and self.message == other.message
        )

    def __repr__(self):
        return f"{type(self).__name__}(worker_id={self.record.worker_id!r}, date={self.record.date})"


class AlreadyCheckedInToday(Rejection):
    code = "already_checked_in_today"
    default_message = "Already checked in for today. Only one check-in allowed per day."


class AlreadyCompletedToday(AlreadyCheckedInToday):
    code = "already_completed_today"
    default_message = "Attendance for today is already complete."


class AlreadyCheckedOutToday(Rejection):
    code = "already_checked_out_today"
    default_message = "Already checked out for today."


class NotCheckedInYet(Rejection):
    code = "not_checked_in_yet"
    default_message = "You need to check in first."


class BreakRequiresActiveCheckIn(Rejection):
    code = "break_requires_active_check_in"
    default_message = "No active check-in found or already on break."


class NotOnBreak(Rejection):
    code = "not_on_break"
    default_message = "No active break found."


class ResetNotAllowed(Rejection):
    code = "reset_not_allowed"
    default_message = "Today's attendance can only be reset after check-out."


class ConcurrentUpdate(Rejection):
    code = "concurrent_update"
    default_message = "Attendance was changed concurrently, please retry."
