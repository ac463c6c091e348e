import atexit
import logging
import os

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from timeclock.api.attendance import bp as attendance_blueprint
from timeclock.api.events import bp as event_blueprint
from timeclock.config import Settings
from timeclock.database import DatabaseManager
from timeclock.events import ActivityEmitter, EventStream
from timeclock.repositories import AttendanceCacheRepository, ConflictRepository
from timeclock.services import (
    AttendanceService,
    HttpRemoteStore,
    ReconcilerService,
    SchedulerService,
)
from timeclock.shared.clock import SystemClock
from timeclock.shared.locks import WorkerLockRegistry


class EndpointFilter(logging.Filter):
    """Suppress noisy request logs for specific endpoints."""

    def __init__(self, *paths):
        super().__init__()
        self.paths = paths

    def filter(self, record):
        message = record.getMessage()
        return not any(path in message for path in self.paths)


def create_app(settings=None, *, remote_store=None, clock=None, db=None, start_scheduler=None):
    load_dotenv()
    settings = settings or Settings.from_env()

    if settings.sentry_dsn:
        init_sentry(settings.sentry_dsn)

    app = Flask(__name__)

    CORS(
        app,
        origins=["*"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        methods=["GET", "POST", "OPTIONS"],
    )

    app.config.from_object("timeclock.config.settings")

    logging.getLogger("werkzeug").addFilter(EndpointFilter("/live-events"))

    db = db or DatabaseManager(settings.db_path)
    clock = clock or SystemClock(settings.timezone)
    remote_store = remote_store or HttpRemoteStore(
        settings.remote_url,
        api_key=settings.remote_api_key,
        device_id=settings.device_id,
        timeout=settings.remote_timeout,
    )
    locks = WorkerLockRegistry()
    cache = AttendanceCacheRepository(db)
    conflicts = ConflictRepository(db)
    emitter = ActivityEmitter(EventStream(), history_size=settings.activity_history)

    attendance_service = AttendanceService(
        remote_store,
        cache,
        emitter=emitter,
        clock=clock,
        locks=locks,
        conflict_retries=settings.conflict_retries,
    )
    reconciler = ReconcilerService(
        remote_store, cache, conflicts, emitter=emitter, clock=clock, locks=locks
    )
    scheduler = SchedulerService(
        reconciler,
        remote_store,
        reconcile_interval=settings.reconcile_interval,
        health_interval=settings.health_interval,
        timezone=settings.timezone,
    )

    app.extensions["timeclock"] = {
        "settings": settings,
        "db": db,
        "cache": cache,
        "conflicts": conflicts,
        "emitter": emitter,
        "attendance_service": attendance_service,
        "reconciler": reconciler,
        "scheduler": scheduler,
    }

    app.register_blueprint(attendance_blueprint)
    app.register_blueprint(event_blueprint)

    @app.teardown_appcontext
    def teardown_db(exception=None):
        """Close database connection at the end of each request"""
        db.close_connection()

    if start_scheduler is None:
        start_scheduler = settings.scheduler_enabled

    # With the reloader on, only the reloader child (== "true") runs the jobs
    run_main_flag = os.environ.get("WERKZEUG_RUN_MAIN")
    if start_scheduler and (run_main_flag == "true" or run_main_flag is None):
        try:
            scheduler.start()

            def cleanup_services():
                app.logger.info("Shutting down services...")
                scheduler.stop()
                emitter.event_stream.close()
                db.close_all_connections()
                app.logger.info("Services shutdown completed")

            atexit.register(cleanup_services)

        except Exception as e:
            app.logger.error(f"Failed to start scheduler service: {e}")
    elif start_scheduler:
        app.logger.info("Skipping scheduler start in reloader process")

    return app


def init_sentry(dsn):
    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=1.0,
    )
