from timeclock.services.attendance_state_machine import AttendanceStateMachine, resolve_day
from timeclock.services.remote_store_service import ApplyResult, HttpRemoteStore, RemoteStore
from timeclock.services.attendance_service import AttendanceService
from timeclock.services.reconciler_service import ReconcilerService
from timeclock.services.scheduler_service import SchedulerService

__all__ = [
    "AttendanceStateMachine",
    "resolve_day",
    "ApplyResult",
    "HttpRemoteStore",
    "RemoteStore",
    "AttendanceService",
    "ReconcilerService",
    "SchedulerService",
]
