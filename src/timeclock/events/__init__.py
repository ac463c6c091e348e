from timeclock.events.event_stream import EventStream
from timeclock.events.activity_emitter import ActivityEmitter

__all__ = ["EventStream", "ActivityEmitter"]
