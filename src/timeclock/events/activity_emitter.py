import threading
from collections import deque
from typing import List, Optional

from timeclock.events.event_stream import EventStream
from timeclock.models import ActivityEvent, ActivityKind, AttendanceRecord, TransitionEvent
from timeclock.shared.clock import format_time_for_display
from timeclock.shared.logger import app_logger

_KIND_BY_EVENT = {
    TransitionEvent.CHECK_IN: ActivityKind.CHECK_IN,
    TransitionEvent.CHECK_OUT: ActivityKind.CHECK_OUT,
    TransitionEvent.BREAK_START: ActivityKind.BREAK_START,
    TransitionEvent.BREAK_END: ActivityKind.BREAK_END,
    TransitionEvent.FORCE_CHECK_OUT: ActivityKind.FORCE_CHECK_OUT,
    TransitionEvent.RESET_DAY: ActivityKind.RESET_DAY,
}


def describe_transition(event: TransitionEvent, record: AttendanceRecord) -> str:
    """Feed message for an accepted transition"""
    if event == TransitionEvent.CHECK_IN:
        return f"Checked in at {format_time_for_display(record.check_in_time)}"
    if event == TransitionEvent.BREAK_START:
        return f"Break started at {format_time_for_display(record.break_start_time)}"
    if event == TransitionEvent.BREAK_END:
        return (
            f"Break ended at {format_time_for_display(record.break_end_time)}"
            f" - Break total: {record.break_time_total:.2f}h"
        )
    if event == TransitionEvent.CHECK_OUT:
        return (
            f"Checked out at {format_time_for_display(record.check_out_time)}"
            f" - Total: {record.total_hours:.2f}h"
        )
    if event == TransitionEvent.FORCE_CHECK_OUT:
        return (
            f"Force checked out at {format_time_for_display(record.check_out_time)}"
            f" - Total: {record.total_hours:.2f}h"
        )
    return f"Attendance reset for {record.date.isoformat()}"


class ActivityEmitter:
    """Best-effort activity feed: keeps recent events and publishes them to the event stream"""

    def __init__(self, event_stream: Optional[EventStream] = None, history_size: int = 100):
        self.event_stream = event_stream or EventStream()
        self._history = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def emit(self, event: ActivityEvent) -> None:
        """Never raises; the feed must not hold up an attendance transition"""
        try:
            with self._lock:
                self._history.append(event)
            self.event_stream.publish(event.to_dict())
        except Exception as e:
            app_logger.error(f"Failed to emit activity event {event.kind}: {e}")

    def emit_transition(
        self, event: TransitionEvent, record: AttendanceRecord, occurred_at, offline: bool = False
    ) -> None:
        message = describe_transition(event, record)
        if offline:
            message += " (Offline)"
        self.emit(
            ActivityEvent(
                kind=_KIND_BY_EVENT[event],
                worker_id=record.worker_id,
                message=message,
                occurred_at=occurred_at,
                date=record.date.isoformat(),
                offline=offline,
                data={"status": record.status.value, "version": record.version},
            )
        )

    def recent(self, limit: int = 20, worker_id: Optional[str] = None) -> List[ActivityEvent]:
        """Most recent events first"""
        with self._lock:
            events = list(self._history)
        if worker_id:
            events = [event for event in events if event.worker_id == worker_id]
        return list(reversed(events))[:limit]
