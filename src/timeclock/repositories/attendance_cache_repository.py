from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from timeclock.database.connection import DatabaseManager, get_db_manager
from timeclock.models import AttendanceRecord, AttendanceStatus, PendingTransition, TransitionEvent
from timeclock.shared.clock import format_instant, parse_date, parse_instant


class AttendanceCacheRepository:
    """Local durable cache: last known record per worker plus the pending journal"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or get_db_manager()

    def get(self, worker_id: str) -> Optional[AttendanceRecord]:
        """Get the last known record for a worker"""
        row = self.db.fetch_one(
            "SELECT * FROM attendance_cache WHERE worker_id = ?", (worker_id,)
        )
        return self._row_to_record(row) if row else None

    def put(self, record: AttendanceRecord) -> AttendanceRecord:
        """Store record as the worker's last known state"""
        with self.db.get_cursor() as cursor:
            self._upsert(cursor, record)
        return record

    def save_pending(
        self,
        record: AttendanceRecord,
        event: TransitionEvent,
        occurred_at: datetime,
        base_version: int,
    ) -> AttendanceRecord:
        """Store a locally applied transition and journal it, in one transaction"""
        pending = record.copy(pending_sync=True)
        with self.db.get_cursor() as cursor:
            self._upsert(cursor, pending)
            cursor.execute(
                """
                INSERT INTO pending_transitions (
                    worker_id, work_date, event, occurred_at, base_version
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    pending.worker_id,
                    pending.date.isoformat(),
                    event.value,
                    format_instant(occurred_at),
                    base_version,
                ),
            )
        return pending

    def has_pending(self, worker_id: str, work_date=None) -> bool:
        """Check whether a worker has unconfirmed transitions (optionally for one day)"""
        if work_date is None:
            row = self.db.fetch_one(
                "SELECT COUNT(*) AS count FROM pending_transitions WHERE worker_id = ?",
                (worker_id,),
            )
        else:
            row = self.db.fetch_one(
                "SELECT COUNT(*) AS count FROM pending_transitions WHERE worker_id = ? AND work_date = ?",
                (worker_id, str(work_date)),
            )
        return bool(row and row["count"])

    def get_pending(self, worker_id: str, work_date) -> List[PendingTransition]:
        rows = self.db.fetch_all(
            """
            SELECT * FROM pending_transitions
            WHERE worker_id = ? AND work_date = ?
            ORDER BY id ASC
            """,
            (worker_id, str(work_date)),
        )
        return [self._row_to_pending(row) for row in rows]

    def get_pending_groups(
        self, limit: int = 1000
    ) -> "OrderedDict[Tuple[str, str], List[PendingTransition]]":
        """Pending transitions grouped by (worker_id, date), oldest first"""
        rows = self.db.fetch_all(
            "SELECT * FROM pending_transitions ORDER BY id ASC LIMIT ?", (limit,)
        )
        groups: "OrderedDict[Tuple[str, str], List[PendingTransition]]" = OrderedDict()
        for row in rows:
            entry = self._row_to_pending(row)
            groups.setdefault((entry.worker_id, entry.date), []).append(entry)
        return groups

    def count_pending(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS count FROM pending_transitions")
        return row["count"] if row else 0

    def delete_pending(self, entry_ids: Iterable[int]) -> int:
        ids = [int(entry_id) for entry_id in entry_ids]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self.db.get_cursor() as cursor:
            cursor.execute(
                f"DELETE FROM pending_transitions WHERE id IN ({placeholders})",
                tuple(ids),
            )
            return cursor.rowcount

    def mark_pending_error(self, entry_id: int, error: str) -> None:
        """Record a failed replay attempt for a journal entry"""
        self.db.execute_query(
            """
            UPDATE pending_transitions
            SET error_count = COALESCE(error_count, 0) + 1, last_error = ?
            WHERE id = ?
            """,
            (error[:500], entry_id),
        )

    def put_if_newer(self, record: AttendanceRecord) -> bool:
        """
        Store a confirmed record unless the cache already holds something newer.

        Newer means a later day, or the same day at a higher version. An equal
        version is rewritten so a confirmed copy clears `pending_sync`.
        """
        with self.db.get_cursor() as cursor:
            cursor.execute(
                "SELECT work_date, version FROM attendance_cache WHERE worker_id = ?",
                (record.worker_id,),
            )
            row = cursor.fetchone()
            if row:
                cached_date = row["work_date"]
                record_date = record.date.isoformat()
                if cached_date > record_date:
                    return False
                if cached_date == record_date and (row["version"] or 0) > record.version:
                    return False
            self._upsert(cursor, record.copy(pending_sync=False))
            return True

    def mark_synced(self, record: AttendanceRecord) -> bool:
        """Replace the cached record with its confirmed copy, if it is still the same day"""
        cached = self.get(record.worker_id)
        if cached is not None and cached.date != record.date:
            return False
        return self.put_if_newer(record)

    def _upsert(self, cursor, record: AttendanceRecord) -> None:
        cursor.execute(
            """
            INSERT OR REPLACE INTO attendance_cache (
                worker_id, work_date, status, check_in_time, check_out_time,
                break_start_time, break_end_time, total_hours, break_time_total,
                pending_sync, version, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.worker_id,
                record.date.isoformat(),
                record.status.value,
                format_instant(record.check_in_time),
                format_instant(record.check_out_time),
                format_instant(record.break_start_time),
                format_instant(record.break_end_time),
                record.total_hours,
                record.break_time_total,
                int(record.pending_sync),
                record.version,
                datetime.now().isoformat(),
            ),
        )

    def _row_to_record(self, row) -> AttendanceRecord:
        """Convert database row to AttendanceRecord"""
        return AttendanceRecord(
            worker_id=row["worker_id"],
            date=parse_date(row["work_date"]),
            status=AttendanceStatus(row["status"]),
            check_in_time=parse_instant(row["check_in_time"]),
            check_out_time=parse_instant(row["check_out_time"]),
            break_start_time=parse_instant(row["break_start_time"]),
            break_end_time=parse_instant(row["break_end_time"]),
            total_hours=row["total_hours"] or 0.0,
            break_time_total=row["break_time_total"] or 0.0,
            pending_sync=bool(row["pending_sync"]),
            version=row["version"] or 0,
        )

    def _row_to_pending(self, row) -> PendingTransition:
        return PendingTransition(
            id=row["id"],
            worker_id=row["worker_id"],
            date=row["work_date"],
            event=TransitionEvent(row["event"]),
            occurred_at=parse_instant(row["occurred_at"]),
            base_version=row["base_version"],
            error_count=row["error_count"] or 0,
            last_error=row["last_error"],
        )

    def summary(self) -> Dict[str, int]:
        row = self.db.fetch_one(
            "SELECT COUNT(*) AS total, COALESCE(SUM(pending_sync), 0) AS pending FROM attendance_cache"
        )
        return {
            "cached_workers": row["total"] if row else 0,
            "pending_workers": row["pending"] if row else 0,
            "pending_transitions": self.count_pending(),
        }
