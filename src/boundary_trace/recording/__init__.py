"""Observer side of the access event recorder."""

from .launch import LaunchSpec
from .session import RecorderState, RecordingResult, RecordingSession
from .sources import EventSource, ProcessEventSource, StreamEventSource

__all__ = [
    "LaunchSpec",
    "RecordingSession",
    "RecordingResult",
    "RecorderState",
    "EventSource",
    "ProcessEventSource",
    "StreamEventSource",
]
