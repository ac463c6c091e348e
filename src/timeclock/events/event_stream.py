"""In-process broadcaster feeding the /live-events server-sent events stream."""

import json
import queue
import threading
from typing import Any, Dict, Optional, Tuple

# Delivered to subscribers when the stream shuts down
CLOSED = None

Message = Optional[Tuple[str, str]]


def format_sse(event_name: str, data: str) -> str:
    """Render one server-sent event frame"""
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event_name}\n{lines}\n"


class EventStream:
    """Fan-out of JSON events to bounded per-client queues; publishing never blocks."""

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers = set()
        self._lock = threading.Lock()
        self.dropped = 0

    def subscribe(self) -> "queue.Queue[Message]":
        subscriber = queue.Queue(maxsize=self.max_queue_size)
        with self._lock:
            self._subscribers.add(subscriber)
        return subscriber

    def unsubscribe(self, subscriber) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: Dict[str, Any], event_name: str = "activity") -> int:
        """Queue event for every subscriber; returns how many received it"""
        if not event:
            return 0

        message = (event_name, json.dumps(event, ensure_ascii=False, default=str))
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscriber in subscribers:
            if self._offer(subscriber, message):
                delivered += 1
        return delivered

    def close(self) -> None:
        """Wake every subscriber with the CLOSED marker and forget them"""
        with self._lock:
            subscribers, self._subscribers = self._subscribers, set()
        for subscriber in subscribers:
            self._offer(subscriber, CLOSED)

    def _offer(self, subscriber, message: Message) -> bool:
        # A slow client loses its oldest message, not the newest
        while True:
            try:
                subscriber.put_nowait(message)
                return True
            except queue.Full:
                try:
                    subscriber.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    return False
