"""
Event system: instance-based async EventBus, listener types and wildcard router.
"""

from .bus import EventBus
from .router import EventRouter
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
