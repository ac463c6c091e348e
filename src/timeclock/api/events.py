from queue import Empty

from flask import Blueprint, Response, current_app, stream_with_context

from timeclock.events.event_stream import CLOSED, format_sse
from timeclock.shared.logger import app_logger

bp = Blueprint("live_events", __name__, url_prefix="/")

HEARTBEAT_SECONDS = 5


@bp.route("/live-events")
def live_events():
    """SSE endpoint for real-time attendance activity."""
    event_stream = current_app.extensions["timeclock"]["emitter"].event_stream
    subscriber = event_stream.subscribe()
    app_logger.info(f"[SSE] Client connected to /live-events ({event_stream.subscriber_count} open)")

    def stream():
        try:
            yield format_sse("connected", "Connection established")
            while True:
                try:
                    message = subscriber.get(timeout=HEARTBEAT_SECONDS)
                except Empty:
                    yield format_sse("heartbeat", "ping")
                    continue
                if message is CLOSED:
                    break
                yield format_sse(*message)
        finally:
            event_stream.unsubscribe(subscriber)
            app_logger.info("[SSE] Client disconnected from /live-events")

    return Response(
        stream_with_context(stream()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
