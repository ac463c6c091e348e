from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from timeclock.models.attendance import TransitionEvent


@dataclass
class PendingTransition:
    """Journal entry for a transition recorded only in the local cache"""

    worker_id: str
    date: str
    event: TransitionEvent
    occurred_at: datetime
    base_version: int
    id: Optional[int] = None
    error_count: int = 0
    last_error: Optional[str] = None


@dataclass
class ReconciliationConflict:
    """Pending transitions discarded because the remote store had moved on"""

    worker_id: str
    date: str
    local_version: int
    remote_version: int
    discarded_events: List[Dict[str, Any]] = field(default_factory=list)
    local_record: Optional[Dict[str, Any]] = None
    remote_record: Optional[Dict[str, Any]] = None
    reason: str = ""
    id: Optional[int] = None
    detected_at: Optional[datetime] = None
    acknowledged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if isinstance(data["detected_at"], datetime):
            data["detected_at"] = data["detected_at"].isoformat()
        return data
