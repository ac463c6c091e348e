from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from timeclock.exceptions import InvariantViolation
from timeclock.shared.clock import format_instant, parse_date, parse_instant


class AttendanceStatus(str, Enum):
    """Daily attendance state of a worker"""

    NOT_CHECKED_IN = "not_checked_in"
    CHECKED_IN = "checked_in"
    ON_BREAK = "on_break"
    CHECKED_OUT = "checked_out"


class TransitionEvent(str, Enum):
    """Requests that move a record between states"""

    CHECK_IN = "check_in"
    BREAK_START = "break_start"
    BREAK_END = "break_end"
    CHECK_OUT = "check_out"
    FORCE_CHECK_OUT = "force_check_out"
    RESET_DAY = "reset_day"


@dataclass
class AttendanceRecord:
    """Attendance for one worker on one calendar day"""

    worker_id: str
    date: date
    status: AttendanceStatus = AttendanceStatus.NOT_CHECKED_IN
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    break_start_time: Optional[datetime] = None
    break_end_time: Optional[datetime] = None
    total_hours: float = 0.0
    break_time_total: float = 0.0
    pending_sync: bool = False
    version: int = 0

    @classmethod
    def fresh(cls, worker_id: str, day: date) -> "AttendanceRecord":
        """Implicit record of a day nobody has acted on yet"""
        return cls(worker_id=worker_id, date=day)

    @property
    def is_on_open_break(self) -> bool:
        if not self.break_start_time:
            return False
        return not self.break_end_time or self.break_end_time < self.break_start_time

    def copy(self, **changes) -> "AttendanceRecord":
        return replace(self, **changes)

    def validate(self) -> "AttendanceRecord":
        """Check the at-rest invariants, raising InvariantViolation on failure"""
        checked_in_states = (
            AttendanceStatus.CHECKED_IN,
            AttendanceStatus.ON_BREAK,
            AttendanceStatus.CHECKED_OUT,
        )
        if (self.check_in_time is not None) != (self.status in checked_in_states):
            raise InvariantViolation(
                f"check_in_time/status mismatch for {self.worker_id} on {self.date}: {self.status.value}"
            )
        if (self.check_out_time is not None) != (
            self.status == AttendanceStatus.CHECKED_OUT
        ):
            raise InvariantViolation(
                f"check_out_time/status mismatch for {self.worker_id} on {self.date}: {self.status.value}"
            )
        if self.is_on_open_break != (self.status == AttendanceStatus.ON_BREAK):
            raise InvariantViolation(
                f"break/status mismatch for {self.worker_id} on {self.date}: {self.status.value}"
            )
        if self.total_hours < 0 or self.break_time_total < 0:
            raise InvariantViolation(
                f"negative durations for {self.worker_id} on {self.date}"
            )
        if self.version < 0:
            raise InvariantViolation(f"negative version for {self.worker_id}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and the remote store"""
        return {
            "worker_id": self.worker_id,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "check_in_time": format_instant(self.check_in_time),
            "check_out_time": format_instant(self.check_out_time),
            "break_start_time": format_instant(self.break_start_time),
            "break_end_time": format_instant(self.break_end_time),
            "total_hours": self.total_hours,
            "break_time_total": self.break_time_total,
            "pending_sync": self.pending_sync,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendanceRecord":
        return cls(
            worker_id=str(data["worker_id"]),
            date=parse_date(data["date"]),
            status=AttendanceStatus(data.get("status") or AttendanceStatus.NOT_CHECKED_IN.value),
            check_in_time=parse_instant(data.get("check_in_time")),
            check_out_time=parse_instant(data.get("check_out_time")),
            break_start_time=parse_instant(data.get("break_start_time")),
            break_end_time=parse_instant(data.get("break_end_time")),
            total_hours=float(data.get("total_hours") or 0),
            break_time_total=float(data.get("break_time_total") or 0),
            pending_sync=bool(data.get("pending_sync", False)),
            version=int(data.get("version") or 0),
        )
