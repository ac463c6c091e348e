from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from timeclock.shared.clock import format_instant


class ActivityKind:
    """Activity feed event types"""

    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    BREAK_START = "break_start"
    BREAK_END = "break_end"
    FORCE_CHECK_OUT = "force_check_out"
    RESET_DAY = "reset_day"
    RECONCILED = "reconciled"
    RECONCILIATION_CONFLICT = "reconciliation_conflict"


@dataclass
class ActivityEvent:
    """Human-readable event for the notification/activity feed"""

    kind: str
    worker_id: str
    message: str
    occurred_at: datetime
    date: Optional[str] = None
    offline: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "worker_id": self.worker_id,
            "message": self.message,
            "occurred_at": format_instant(self.occurred_at),
            "date": self.date,
            "offline": self.offline,
            "data": self.data,
        }
