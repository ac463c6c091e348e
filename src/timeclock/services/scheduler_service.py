from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from timeclock.services.reconciler_service import ReconcilerService
from timeclock.services.remote_store_service import RemoteStore
from timeclock.shared.logger import app_logger


class SchedulerService:
    """Background jobs: periodic reconciliation and remote store health probes"""

    RECONCILE_JOB_ID = "reconcile_pending"
    HEALTH_JOB_ID = "remote_health_check"

    def __init__(
        self,
        reconciler: ReconcilerService,
        remote_store: RemoteStore,
        reconcile_interval: int = 30,
        health_interval: int = 15,
        timezone: str = "UTC",
    ):
        self.reconciler = reconciler
        self.remote_store = remote_store
        self.reconcile_interval = reconcile_interval
        self.health_interval = health_interval
        self.timezone = timezone
        self.scheduler = None
        self.logger = app_logger
        self.remote_online = None

    @property
    def is_running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)

    def _jobs(self):
        """(id, name, callable, interval seconds) for every scheduled job"""
        return (
            (self.RECONCILE_JOB_ID, "Reconcile Pending Attendance", self._run_reconcile, self.reconcile_interval),
            (self.HEALTH_JOB_ID, "Remote Store Health Check", self._run_health_check, self.health_interval),
        )

    def start(self):
        if self.is_running:
            self.logger.warning("Scheduler is already running")
            return

        scheduler = BackgroundScheduler(
            timezone=self.timezone,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

        for job_id, name, func, seconds in self._jobs():
            scheduler.add_job(
                func=func,
                trigger=IntervalTrigger(seconds=seconds),
                id=job_id,
                name=name,
                replace_existing=True,
                misfire_grace_time=seconds,
            )
            self.logger.info(f"[CRON] {name} scheduled every {seconds} seconds")

        try:
            scheduler.start()
        except Exception as e:
            self.logger.error(f"Failed to start scheduler: {e}")
            raise

        self.scheduler = scheduler
        self.logger.info("Scheduler service started")

    def stop(self):
        if not self.is_running:
            return
        try:
            self.scheduler.shutdown(wait=False)
            self.logger.info("Scheduler service stopped")
        except Exception as e:
            self.logger.error(f"Error stopping scheduler: {e}")

    def trigger_now(self, job_id: str):
        """Run a job's function in the calling thread"""
        for known_id, _name, func, _seconds in self._jobs():
            if known_id == job_id:
                func()
                return {"success": True, "message": f"Job {job_id} executed manually"}
        return {"success": False, "error": f"Job {job_id} not found"}

    def _run_reconcile(self):
        try:
            result = self.reconciler.reconcile_pending()
        except Exception as e:
            self.logger.error(f"[CRON] Reconcile error: {e}")
            return

        if result.get("replayed") or result.get("conflicts") or result.get("failed"):
            self.logger.info(
                f"[CRON] Reconcile: {result.get('replayed', 0)} replayed, "
                f"{result.get('conflicts', 0)} conflict(s), {result.get('failed', 0)} refused, "
                f"{result.get('remaining', 0)} remaining"
            )
        if result.get("interrupted"):
            self.logger.warning(
                f"[CRON] Reconcile interrupted, {result.get('remaining', 0)} transition(s) still pending"
            )

    def _run_health_check(self):
        """Probe the remote store and reconcile as soon as it comes back"""
        try:
            online = self.remote_store.ping()
        except Exception as e:
            self.logger.error(f"[CRON] Health check error: {e}")
            online = False

        was_online, self.remote_online = self.remote_online, online
        if online and was_online is False:
            self.logger.info("[CRON] Remote Store reachable again, reconciling now")
            self._run_reconcile()
        elif not online and was_online is not False:
            self.logger.warning("[CRON] Remote Store unreachable, working from local cache")

    def _job_executed_listener(self, event):
        self.logger.debug(f"Job '{event.job_id}' executed successfully")

    def _job_error_listener(self, event):
        if event.code == EVENT_JOB_MISSED:
            self.logger.warning(f"Job '{event.job_id}' missed its run time")
        else:
            self.logger.error(f"Job '{event.job_id}' crashed: {event.exception}")

    def get_all_jobs(self):
        """Scheduler state and next run time of each job"""
        if not self.scheduler:
            return {"running": False, "jobs": [], "total_jobs": 0}

        jobs = [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": str(job.next_run_time) if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]
        return {"running": self.is_running, "jobs": jobs, "total_jobs": len(jobs)}
