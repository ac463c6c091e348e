import os
from dataclasses import dataclass


def strtobool(val):
    """Convert a string representation of truth to true (1) or false (0)."""
    val = val.lower()
    if val in ('y', 'yes', 't', 'true', 'on', '1'):
        return 1
    elif val in ('n', 'no', 'f', 'false', 'off', '0'):
        return 0
    else:
        raise ValueError(f"invalid truth value {val!r}")


# Flask settings, loaded with app.config.from_object()
SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key-for-timeclock")
DEBUG = bool(strtobool(os.getenv("FLASK_DEBUG", "false")))

LOG_FILE_SIZE = os.getenv("LOG_FILE_SIZE", "10485760")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the attendance core"""

    remote_url: str = ""
    remote_api_key: str = ""
    device_id: str = ""
    remote_timeout: float = 5.0
    conflict_retries: int = 3
    timezone: str = "UTC"
    db_path: str = "timeclock.db"
    reconcile_interval: int = 30
    health_interval: int = 15
    activity_history: int = 100
    scheduler_enabled: bool = True
    sentry_dsn: str = ""

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            remote_url=os.getenv("TIMECLOCK_REMOTE_URL", "").strip().rstrip("/"),
            remote_api_key=os.getenv("TIMECLOCK_REMOTE_API_KEY", ""),
            device_id=os.getenv("TIMECLOCK_DEVICE_ID", ""),
            remote_timeout=float(os.getenv("TIMECLOCK_REMOTE_TIMEOUT", "5")),
            conflict_retries=int(os.getenv("TIMECLOCK_CONFLICT_RETRIES", "3")),
            timezone=os.getenv("TIMECLOCK_TIMEZONE", "UTC"),
            db_path=os.getenv("TIMECLOCK_DB_PATH", "timeclock.db"),
            reconcile_interval=int(os.getenv("TIMECLOCK_RECONCILE_INTERVAL", "30")),
            health_interval=int(os.getenv("TIMECLOCK_HEALTH_INTERVAL", "15")),
            activity_history=int(os.getenv("TIMECLOCK_ACTIVITY_HISTORY", "100")),
            scheduler_enabled=bool(
                strtobool(os.getenv("TIMECLOCK_SCHEDULER_ENABLED", "true"))
            ),
            sentry_dsn=os.getenv("SENTRY_DSN", ""),
        )
