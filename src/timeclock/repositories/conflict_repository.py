import json
from typing import List, Optional

from timeclock.database.connection import DatabaseManager, get_db_manager
from timeclock.models import ReconciliationConflict
from timeclock.shared.clock import parse_instant


class ConflictRepository:
    """Reconciliation conflicts awaiting operator review"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or get_db_manager()

    def create(self, conflict: ReconciliationConflict) -> ReconciliationConflict:
        with self.db.get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO reconciliation_conflicts (
                    worker_id, work_date, local_version, remote_version,
                    discarded_events, local_record, remote_record, reason
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    conflict.worker_id,
                    conflict.date,
                    conflict.local_version,
                    conflict.remote_version,
                    json.dumps(conflict.discarded_events),
                    json.dumps(conflict.local_record) if conflict.local_record else None,
                    json.dumps(conflict.remote_record) if conflict.remote_record else None,
                    conflict.reason,
                ),
            )
            conflict_id = cursor.lastrowid
        return self.get_by_id(conflict_id)

    def get_by_id(self, conflict_id: int) -> Optional[ReconciliationConflict]:
        row = self.db.fetch_one(
            "SELECT * FROM reconciliation_conflicts WHERE id = ?", (conflict_id,)
        )
        return self._row_to_conflict(row) if row else None

    def list(
        self, include_acknowledged: bool = False, limit: int = 100
    ) -> List[ReconciliationConflict]:
        if include_acknowledged:
            rows = self.db.fetch_all(
                "SELECT * FROM reconciliation_conflicts ORDER BY id DESC LIMIT ?",
                (limit,),
            )
        else:
            rows = self.db.fetch_all(
                "SELECT * FROM reconciliation_conflicts WHERE acknowledged = 0 ORDER BY id DESC LIMIT ?",
                (limit,),
            )
        return [self._row_to_conflict(row) for row in rows]

    def acknowledge(self, conflict_id: int) -> bool:
        with self.db.get_cursor() as cursor:
            cursor.execute(
                "UPDATE reconciliation_conflicts SET acknowledged = 1 WHERE id = ?",
                (conflict_id,),
            )
            return cursor.rowcount > 0

    def _row_to_conflict(self, row) -> ReconciliationConflict:
        return ReconciliationConflict(
            id=row["id"],
            worker_id=row["worker_id"],
            date=row["work_date"],
            local_version=row["local_version"],
            remote_version=row["remote_version"],
            discarded_events=json.loads(row["discarded_events"]) if row["discarded_events"] else [],
            local_record=json.loads(row["local_record"]) if row["local_record"] else None,
            remote_record=json.loads(row["remote_record"]) if row["remote_record"] else None,
            reason=row["reason"] or "",
            detected_at=parse_instant(row["detected_at"]),
            acknowledged=bool(row["acknowledged"]),
        )
