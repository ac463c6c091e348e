from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


class SystemClock:
    """Server-trusted clock; the worker's calendar day comes from its timezone."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


def hours_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    """Elapsed hours between two instants, never negative."""
    if not start or not end:
        return 0.0
    return max((end - start) / timedelta(hours=1), 0.0)


def format_instant(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_instant(value) -> Optional[datetime]:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value) -> date:
    """Parse YYYY-MM-DD string into date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()


def format_time_for_display(value: Optional[datetime]) -> str:
    return value.strftime("%H:%M") if value else "--:--"
