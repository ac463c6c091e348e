import threading
from typing import Any, Dict, List, Optional

from timeclock.events.activity_emitter import ActivityEmitter
from timeclock.exceptions import RemoteStoreError, RemoteStoreUnavailable
from timeclock.models import (
    ActivityEvent,
    ActivityKind,
    AttendanceRecord,
    PendingTransition,
    ReconciliationConflict,
    Rejection,
)
from timeclock.repositories import AttendanceCacheRepository, ConflictRepository
from timeclock.services.attendance_state_machine import AttendanceStateMachine
from timeclock.services.remote_store_service import RemoteStore
from timeclock.shared.clock import SystemClock, format_instant, parse_date
from timeclock.shared.locks import WorkerLockRegistry
from timeclock.shared.logger import app_logger


class ReconcilerService:
    """Replays locally recorded transitions into the remote store; the remote store wins conflicts"""

    BATCH_SIZE = 1000
    # Refusals of one journal entry before the remote copy wins
    MAX_REFUSALS = 5

    def __init__(
        self,
        remote_store: RemoteStore,
        cache: AttendanceCacheRepository,
        conflicts: ConflictRepository,
        emitter: Optional[ActivityEmitter] = None,
        clock: Optional[SystemClock] = None,
        locks: Optional[WorkerLockRegistry] = None,
        state_machine: Optional[AttendanceStateMachine] = None,
    ):
        self.remote_store = remote_store
        self.cache = cache
        self.conflicts = conflicts
        self.emitter = emitter or ActivityEmitter()
        self.clock = clock or SystemClock()
        self.locks = locks or WorkerLockRegistry()
        self.state_machine = state_machine or AttendanceStateMachine()
        self.logger = app_logger
        self._run_lock = threading.Lock()

    def reconcile_pending(self) -> Dict[str, Any]:
        """
        Push every pending (worker, date) group to the remote store.

        Returns:
            Dict summary: groups processed, transitions replayed, conflicts,
            groups the store refused, transitions still pending, and whether
            the run was skipped or interrupted by a connectivity failure.
        """
        summary = {
            "success": True,
            "skipped": False,
            "groups": 0,
            "replayed": 0,
            "conflicts": 0,
            "failed": 0,
            "remaining": 0,
            "interrupted": False,
        }

        if not self._run_lock.acquire(blocking=False):
            self.logger.info("[RECONCILE] Reconciliation already running, skipping")
            summary["skipped"] = True
            return summary

        try:
            groups = self.cache.get_pending_groups(limit=self.BATCH_SIZE)
            if not groups:
                self.logger.debug("[RECONCILE] No pending transitions")
                return summary

            self.logger.info(f"[RECONCILE] Reconciling {len(groups)} pending worker day(s)")

            for (worker_id, work_date), entries in groups.items():
                summary["groups"] += 1
                outcome = self._reconcile_group(worker_id, work_date, entries)
                summary["replayed"] += outcome["replayed"]
                if outcome["conflict"]:
                    summary["conflicts"] += 1

                error = outcome.get("error")
                if error is None:
                    continue
                summary["success"] = False
                if isinstance(error, RemoteStoreUnavailable):
                    self.logger.warning(
                        f"[RECONCILE] Remote Store unavailable while reconciling {worker_id} "
                        f"on {work_date}, will retry: {error}"
                    )
                    summary["interrupted"] = True
                    break
                # The store refused this group only; the others are still worth trying
                self.logger.error(
                    f"[RECONCILE] Remote Store refused {worker_id} on {work_date}, "
                    f"skipping the group for this run: {error}"
                )
                summary["failed"] += 1
        finally:
            summary["remaining"] = self.cache.count_pending()
            self._run_lock.release()

        self.logger.info(
            f"[RECONCILE] Done: {summary['replayed']} replayed, {summary['conflicts']} conflict(s), "
            f"{summary['failed']} refused, {summary['remaining']} remaining"
        )
        return summary

    def _reconcile_group(
        self, worker_id: str, work_date: str, entries: List[PendingTransition]
    ) -> Dict[str, Any]:
        day = parse_date(work_date)
        base_version = entries[0].base_version
        local_version = base_version + len(entries)

        failing = entries[0]
        current = None
        replayed = 0
        try:
            remote = self.remote_store.read(worker_id, day)
            remote_version = remote.version if remote else 0
            if remote_version != base_version:
                self._resolve_conflict(
                    worker_id,
                    work_date,
                    remote,
                    local_version,
                    f"remote version {remote_version} differs from local base {base_version}",
                )
                return {"replayed": 0, "conflict": True}

            current = remote or AttendanceRecord.fresh(worker_id, day)
            for failing in entries:
                outcome = self.state_machine.apply(current, failing.event, failing.occurred_at)
                if isinstance(outcome, Rejection):
                    self._resolve_conflict(
                        worker_id,
                        work_date,
                        current if current.version else remote,
                        local_version,
                        f"{failing.event.value} no longer valid: {outcome.code}",
                    )
                    return {"replayed": replayed, "conflict": True}

                result = self.remote_store.apply(outcome, expected_version=current.version)
                if not result.applied:
                    self._resolve_conflict(
                        worker_id,
                        work_date,
                        result.record,
                        local_version,
                        f"version conflict replaying {failing.event.value}",
                    )
                    return {"replayed": replayed, "conflict": True}

                current = (result.record or outcome).copy(pending_sync=False)
                self.cache.delete_pending([failing.id])
                replayed += 1
        except RemoteStoreError as e:
            self.cache.mark_pending_error(failing.id, str(e))
            refused = not isinstance(e, RemoteStoreUnavailable) and current is not None
            if not refused or failing.error_count + 1 < self.MAX_REFUSALS:
                return {"replayed": replayed, "conflict": False, "error": e}
            # Refused too often: the remote copy wins like any other conflict
            self._resolve_conflict(
                worker_id,
                work_date,
                current if current.version else None,
                local_version,
                f"{failing.event.value} refused {failing.error_count + 1} times: {e}",
            )
            return {"replayed": replayed, "conflict": True}

        self._finish_group(worker_id, work_date, current)
        return {"replayed": replayed, "conflict": False}

    def _finish_group(self, worker_id: str, work_date: str, confirmed: AttendanceRecord) -> None:
        with self.locks.for_worker(worker_id):
            if self.cache.has_pending(worker_id, work_date):
                # New offline transitions arrived during the replay; they stay pending
                self.logger.info(
                    f"[RECONCILE] {worker_id} on {work_date} confirmed at v{confirmed.version}, "
                    f"newer local transitions still pending"
                )
                return
            self.cache.mark_synced(confirmed)

        self.logger.info(
            f"[RECONCILE] {worker_id} on {work_date} confirmed at v{confirmed.version}"
        )
        self.emitter.emit(
            ActivityEvent(
                kind=ActivityKind.RECONCILED,
                worker_id=worker_id,
                message=f"Offline attendance for {work_date} synced",
                occurred_at=self.clock.now(),
                date=work_date,
                data={"version": confirmed.version, "status": confirmed.status.value},
            )
        )

    def _resolve_conflict(
        self,
        worker_id: str,
        work_date: str,
        remote: Optional[AttendanceRecord],
        local_version: int,
        reason: str,
    ) -> ReconciliationConflict:
        """Remote wins: drop the worker's pending transitions for the day and log them for review"""
        with self.locks.for_worker(worker_id):
            discarded = self.cache.get_pending(worker_id, work_date)
            local = self.cache.get(worker_id)
            self.cache.delete_pending([entry.id for entry in discarded])

            local_snapshot = None
            if local is not None and local.date.isoformat() == work_date:
                local_snapshot = local.to_dict()
                replacement = remote or AttendanceRecord.fresh(worker_id, local.date)
                self.cache.put(replacement.copy(pending_sync=False))

        conflict = self.conflicts.create(
            ReconciliationConflict(
                worker_id=worker_id,
                date=work_date,
                local_version=max(local_version, local_snapshot["version"] if local_snapshot else 0),
                remote_version=remote.version if remote else 0,
                discarded_events=[
                    {
                        "event": entry.event.value,
                        "occurred_at": format_instant(entry.occurred_at),
                        "base_version": entry.base_version,
                    }
                    for entry in discarded
                ],
                local_record=local_snapshot,
                remote_record=remote.to_dict() if remote else None,
                reason=reason,
            )
        )

        self.logger.warning(
            f"[RECONCILE] Conflict for {worker_id} on {work_date}: {reason}; "
            f"discarded {len(discarded)} local transition(s) (conflict #{conflict.id})"
        )
        self.emitter.emit(
            ActivityEvent(
                kind=ActivityKind.RECONCILIATION_CONFLICT,
                worker_id=worker_id,
                message=(
                    f"Offline attendance for {work_date} was superseded by the server copy; "
                    f"{len(discarded)} change(s) discarded"
                ),
                occurred_at=self.clock.now(),
                date=work_date,
                data={"conflict_id": conflict.id, "reason": reason},
            )
        )
        return conflict
