"""
Core event types.

EventPayload is a plain dict so payloads stay JSON-serializable. Listener
priority decides both ordering and how a listener is run:

- CRITICAL (0): sequential, awaited, timeout-protected
- HIGH (10): sequential, awaited, timeout-protected
- NORMAL (50): concurrent (asyncio.gather), awaited
- LOW (100): fire-and-forget background task
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

EventPayload = dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(Enum):
    """Lower value runs earlier."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(slots=True, frozen=True)
class EventListener:
    """A registered callback and its scheduling metadata."""

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        """
        Build a listener, deriving the identifier from the callback when omitted.

        Example:
            >>> EventListener.from_callback("mission.completed", on_done,
            ...     ListenerPriority.HIGH).identifier
            'app.handlers.on_done@mission.completed'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority.value, self.identifier)
