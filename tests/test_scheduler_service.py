"""Tests for the background reconcile and health-check jobs."""

from unittest.mock import Mock

import pytest

from timeclock.services import SchedulerService


@pytest.fixture
def reconciler():
    reconciler = Mock()
    reconciler.reconcile_pending.return_value = {
        "success": True,
        "replayed": 0,
        "conflicts": 0,
        "remaining": 0,
        "interrupted": False,
    }
    return reconciler


def test_start_registers_jobs_and_stop(reconciler):
    scheduler = SchedulerService(reconciler, Mock(), reconcile_interval=60, health_interval=60)

    scheduler.start()
    try:
        jobs = scheduler.get_all_jobs()
        assert scheduler.is_running is True
        assert {job["id"] for job in jobs["jobs"]} == {"reconcile_pending", "remote_health_check"}
    finally:
        scheduler.stop()

    assert scheduler.is_running is False


def test_health_check_reconciles_when_remote_returns(reconciler):
    remote = Mock()
    remote.ping.side_effect = [True, False, False, True]
    scheduler = SchedulerService(reconciler, remote)

    for _ in range(4):
        scheduler._run_health_check()

    assert reconciler.reconcile_pending.call_count == 1
    assert scheduler.remote_online is True


def test_reconcile_job_never_raises(reconciler):
    reconciler.reconcile_pending.side_effect = RuntimeError("database is locked")
    scheduler = SchedulerService(reconciler, Mock())

    scheduler._run_reconcile()

    reconciler.reconcile_pending.assert_called_once()


def test_trigger_now(reconciler):
    scheduler = SchedulerService(reconciler, Mock())

    assert scheduler.trigger_now("reconcile_pending")["success"] is True
    assert scheduler.trigger_now("nightly_export")["success"] is False
    reconciler.reconcile_pending.assert_called_once()
