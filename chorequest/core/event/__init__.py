"""
Event system: async publish/subscribe with a global singleton EventBus.
"""

from chorequest.core.event.bus import CallbackType, EventBus, EventPayload

# Global runtime singleton EventBus
event_bus = EventBus()

__all__ = [
    "event_bus",
    "EventBus",
    "EventPayload",
    "CallbackType",
]
