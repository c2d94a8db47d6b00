"""Business logic services."""

from .event_recorder import EventRecorder

__all__ = [
    "EventRecorder",
]
