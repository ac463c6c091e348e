import sqlite3
from datetime import date, datetime
from typing import Optional, Union

from timeclock.events.activity_emitter import ActivityEmitter
from timeclock.exceptions import RemoteStoreError, RemoteStoreUnavailable
from timeclock.models import AttendanceRecord, ConcurrentUpdate, Rejection, TransitionEvent
from timeclock.repositories import AttendanceCacheRepository
from timeclock.services.attendance_state_machine import AttendanceStateMachine, resolve_day
from timeclock.services.remote_store_service import RemoteStore
from timeclock.shared.clock import SystemClock
from timeclock.shared.locks import WorkerLockRegistry
from timeclock.shared.logger import app_logger

Result = Union[AttendanceRecord, Rejection]


class AttendanceService:
    """Worker-facing attendance operations over the remote store and local cache"""

    def __init__(
        self,
        remote_store: RemoteStore,
        cache: AttendanceCacheRepository,
        emitter: Optional[ActivityEmitter] = None,
        clock: Optional[SystemClock] = None,
        locks: Optional[WorkerLockRegistry] = None,
        state_machine: Optional[AttendanceStateMachine] = None,
        conflict_retries: int = 3,
    ):
        self.remote_store = remote_store
        self.cache = cache
        self.emitter = emitter or ActivityEmitter()
        self.clock = clock or SystemClock()
        self.locks = locks or WorkerLockRegistry()
        self.state_machine = state_machine or AttendanceStateMachine()
        self.conflict_retries = max(int(conflict_retries), 1)
        self.logger = app_logger

    def check_in(self, worker_id: str) -> Result:
        return self._transition(worker_id, TransitionEvent.CHECK_IN)

    def check_out(self, worker_id: str) -> Result:
        return self._transition(worker_id, TransitionEvent.CHECK_OUT)

    def break_start(self, worker_id: str) -> Result:
        return self._transition(worker_id, TransitionEvent.BREAK_START)

    def break_end(self, worker_id: str) -> Result:
        return self._transition(worker_id, TransitionEvent.BREAK_END)

    def force_check_out(self, worker_id: str) -> Result:
        """Operator override: close a session the worker could not close normally"""
        self.logger.warning(f"[OVERRIDE] Force check-out requested for worker {worker_id}")
        return self._transition(worker_id, TransitionEvent.FORCE_CHECK_OUT)

    def reset_day(self, worker_id: str) -> Result:
        """Operator override: start today over; past days are never touched"""
        self.logger.warning(f"[OVERRIDE] Day reset requested for worker {worker_id}")
        return self._transition(worker_id, TransitionEvent.RESET_DAY)

    def get_status(self, worker_id: str) -> AttendanceRecord:
        """Today's record for a worker; read-only apart from refreshing the cache mirror"""
        today = self.clock.today()

        if self.cache.has_pending(worker_id, today):
            return resolve_day(self.cache.get(worker_id), worker_id, today)

        try:
            stored = self.remote_store.read(worker_id, today)
        except RemoteStoreError as e:
            self.logger.warning(
                f"[OFFLINE] Remote Store unavailable for status of {worker_id}, using local cache: {e}"
            )
            return resolve_day(self.cache.get(worker_id), worker_id, today)

        if stored is not None:
            self._mirror(stored)
        return resolve_day(stored, worker_id, today)

    def _transition(self, worker_id: str, event: TransitionEvent) -> Result:
        """
        Apply event for worker_id against the remote store, or the local cache when the
        store is unreachable. A RemoteStoreError other than RemoteStoreUnavailable means
        the store answered and refused; it is raised to the caller and nothing is journaled.
        """
        if not worker_id:
            raise ValueError("worker_id is required")

        now = self.clock.now()
        today = now.date()

        # Queue behind unconfirmed local transitions to keep their order
        if self.cache.has_pending(worker_id, today):
            return self._apply_locally(worker_id, event, now, today)

        for attempt in range(1, self.conflict_retries + 1):
            try:
                stored = self.remote_store.read(worker_id, today)
            except RemoteStoreUnavailable as e:
                self.logger.warning(
                    f"[OFFLINE] Remote Store read failed for {worker_id}, falling back to local cache: {e}"
                )
                return self._apply_locally(worker_id, event, now, today)

            current = resolve_day(stored, worker_id, today)

            if event == TransitionEvent.RESET_DAY and current.version == 0:
                return self._reset_without_record(current, now)

            outcome = self.state_machine.apply(current, event, now)
            if isinstance(outcome, Rejection):
                self._log_rejection(outcome, event)
                return outcome

            try:
                result = self.remote_store.apply(outcome, expected_version=current.version)
            except RemoteStoreUnavailable as e:
                self.logger.warning(
                    f"[OFFLINE] Remote Store write failed for {worker_id}, recording {event.value} locally: {e}"
                )
                return self._apply_locally(worker_id, event, now, today)

            if result.applied:
                confirmed = (result.record or outcome).copy(pending_sync=False)
                self._mirror(confirmed)
                self._log_applied(confirmed, event, offline=False)
                self.emitter.emit_transition(event, confirmed, now, offline=False)
                return confirmed

            self.logger.info(
                f"Version conflict on {event.value} for {worker_id} "
                f"(attempt {attempt}/{self.conflict_retries}), re-evaluating"
            )

        self.logger.warning(
            f"Giving up {event.value} for {worker_id} after {self.conflict_retries} version conflicts"
        )
        return ConcurrentUpdate(resolve_day(self._safe_read(worker_id, today), worker_id, today))

    def _apply_locally(
        self, worker_id: str, event: TransitionEvent, now: datetime, today: date
    ) -> Result:
        """Fallback path; the per-worker mutex serialises the read-modify-write"""
        with self.locks.for_worker(worker_id):
            current = resolve_day(self.cache.get(worker_id), worker_id, today)

            if event == TransitionEvent.RESET_DAY and current.version == 0:
                return self._reset_without_record(current, now)

            outcome = self.state_machine.apply(current, event, now)
            if isinstance(outcome, Rejection):
                self._log_rejection(outcome, event)
                return outcome

            pending = self.cache.save_pending(
                outcome, event, occurred_at=now, base_version=current.version
            )

        self._log_applied(pending, event, offline=True)
        self.emitter.emit_transition(event, pending, now, offline=True)
        return pending

    def _reset_without_record(self, current: AttendanceRecord, now: datetime) -> AttendanceRecord:
        # Nothing stored for today: the fresh record already is the reset state
        self.logger.info(f"Reset for {current.worker_id}: no record for {current.date}, nothing to write")
        self.emitter.emit_transition(TransitionEvent.RESET_DAY, current, now)
        return current

    def _mirror(self, record: AttendanceRecord) -> None:
        """Keep the local cache in step with the confirmed remote state"""
        try:
            with self.locks.for_worker(record.worker_id):
                if not self.cache.has_pending(record.worker_id, record.date):
                    self.cache.put_if_newer(record)
        except sqlite3.Error as e:
            self.logger.error(f"Failed to refresh local cache for {record.worker_id}: {e}")

    def _safe_read(self, worker_id: str, today: date) -> Optional[AttendanceRecord]:
        try:
            return self.remote_store.read(worker_id, today)
        except RemoteStoreError:
            return self.cache.get(worker_id)

    def _log_applied(self, record: AttendanceRecord, event: TransitionEvent, offline: bool) -> None:
        where = "local cache (pending sync)" if offline else "remote store"
        if event == TransitionEvent.FORCE_CHECK_OUT:
            self.logger.warning(
                f"[OVERRIDE] Worker {record.worker_id} force checked out on {record.date}, "
                f"total {record.total_hours:.2f}h, recorded in {where}"
            )
        else:
            self.logger.info(
                f"{event.value} accepted for {record.worker_id} on {record.date} "
                f"-> {record.status.value} v{record.version}, recorded in {where}"
            )

    def _log_rejection(self, rejection: Rejection, event: TransitionEvent) -> None:
        self.logger.info(
            f"{event.value} rejected for {rejection.record.worker_id}: {rejection.code}"
        )
