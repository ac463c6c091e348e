from timeclock.repositories.attendance_cache_repository import AttendanceCacheRepository
from timeclock.repositories.conflict_repository import ConflictRepository

__all__ = [
    "AttendanceCacheRepository",
    "ConflictRepository",
]
