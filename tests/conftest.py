"""
Shared fixtures for the timeclock test suite.

The remote store is an in-memory fake with real optimistic version checks and
an online/offline switch; the local cache is a temporary SQLite file.
"""

import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone

import pytest

# Keep file logging out of the user's home directory
os.environ.setdefault("TIMECLOCK_LOG_DIR", tempfile.gettempdir())

from timeclock import create_app
from timeclock.config import Settings
from timeclock.database import DatabaseManager
from timeclock.events import ActivityEmitter
from timeclock.exceptions import RemoteStoreError, RemoteStoreUnavailable
from timeclock.repositories import AttendanceCacheRepository, ConflictRepository
from timeclock.services import ApplyResult, AttendanceService, ReconcilerService, RemoteStore
from timeclock.shared.locks import WorkerLockRegistry

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start=START):
        self.current = start

    def now(self):
        return self.current

    def today(self):
        return self.current.date()

    def set(self, value):
        self.current = value

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FakeRemoteStore(RemoteStore):
    """In-memory remote store keyed by (worker_id, date)"""

    def __init__(self):
        self.records = {}
        self.online = True
        self.apply_calls = 0
        self.before_apply = None
        # Optional predicate over the record; true answers the write with a 422
        self.refuse = None
        self._lock = threading.Lock()

    def _check_online(self):
        if not self.online:
            raise RemoteStoreUnavailable("remote store offline")

    def seed(self, record):
        with self._lock:
            self.records[(record.worker_id, record.date)] = record.copy(pending_sync=False)

    def stored(self, worker_id, day):
        return self.records.get((worker_id, day))

    def read(self, worker_id, work_date):
        self._check_online()
        with self._lock:
            record = self.records.get((worker_id, work_date))
            return record.copy() if record else None

    def apply(self, record, expected_version):
        self._check_online()
        if self.before_apply is not None:
            hook, self.before_apply = self.before_apply, None
            hook()
        if self.refuse is not None and self.refuse(record):
            raise RemoteStoreError("remote store rejected write with 422")
        with self._lock:
            self.apply_calls += 1
            key = (record.worker_id, record.date)
            current = self.records.get(key)
            current_version = current.version if current else 0
            if current_version != expected_version:
                return ApplyResult(applied=False, record=current.copy() if current else None)
            stored = record.copy(pending_sync=False)
            self.records[key] = stored
            return ApplyResult(applied=True, record=stored.copy())

    def ping(self):
        return self.online


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "timeclock-test.db"))
    yield manager
    manager.close_all_connections()


@pytest.fixture
def cache(db):
    return AttendanceCacheRepository(db)


@pytest.fixture
def conflicts(db):
    return ConflictRepository(db)


@pytest.fixture
def emitter():
    return ActivityEmitter(history_size=50)


@pytest.fixture
def locks():
    return WorkerLockRegistry()


@pytest.fixture
def service(remote, cache, emitter, clock, locks):
    return AttendanceService(remote, cache, emitter=emitter, clock=clock, locks=locks)


@pytest.fixture
def reconciler(remote, cache, conflicts, emitter, clock, locks):
    return ReconcilerService(
        remote, cache, conflicts, emitter=emitter, clock=clock, locks=locks
    )


@pytest.fixture
def app(tmp_path, remote, clock, db):
    settings = Settings(db_path=str(tmp_path / "timeclock-test.db"), scheduler_enabled=False)
    flask_app = create_app(settings, remote_store=remote, clock=clock, db=db, start_scheduler=False)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
