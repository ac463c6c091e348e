from timeclock.models.attendance import AttendanceRecord, AttendanceStatus, TransitionEvent
from timeclock.models.activity import ActivityEvent, ActivityKind
from timeclock.models.conflict import PendingTransition, ReconciliationConflict
from timeclock.models.rejection import (
    Rejection,
    AlreadyCheckedInToday,
    AlreadyCompletedToday,
    AlreadyCheckedOutToday,
    NotCheckedInYet,
    BreakRequiresActiveCheckIn,
    NotOnBreak,
    ResetNotAllowed,
    ConcurrentUpdate,
)

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "TransitionEvent",
    "ActivityEvent",
    "ActivityKind",
    "PendingTransition",
    "ReconciliationConflict",
    "Rejection",
    "AlreadyCheckedInToday",
    "AlreadyCompletedToday",
    "AlreadyCheckedOutToday",
    "NotCheckedInYet",
    "BreakRequiresActiveCheckIn",
    "NotOnBreak",
    "ResetNotAllowed",
    "ConcurrentUpdate",
]
