"""
EventBus: async publish/subscribe with tiered listener execution.

Purpose
-------
Decouples the progression services from whatever reacts to their results
(UI refresh, analytics, notification toasts). Services publish only after
their transaction commits, so a listener never observes uncommitted state.

Responsibilities
----------------
- Register and unregister listeners with priorities and one-shot semantics
- Route events to exact and wildcard subscribers
- Execute listeners by tier:
  * CRITICAL / HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Isolate errors: a failing listener is logged and never reaches the publisher

Design Decisions
----------------
- **Instance-based**: each application (and each test) owns its bus
- **Config-driven timeouts**: ``core.event.listener_timeout.*`` from
  ConfigManager, overridable per instance
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional

from src.core.config.manager import ConfigManager
from src.core.event.router import EventRouter
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Async EventBus with deterministic ordering for CRITICAL/HIGH listeners.

    Designed for single-threaded asyncio usage; registry mutations happen
    between awaits and need no lock.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("mission.completed", on_completed, priority=ListenerPriority.HIGH)
    >>> await bus.publish("mission.completed", {"user_id": "u1", "mission_id": "m1"})
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        router: Optional[EventRouter] = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._router = router or EventRouter()
        self._listeners: dict[str, list[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()

        self._critical_timeout = self._load_timeout(
            "core.event.listener_timeout.critical_seconds",
            critical_timeout_seconds,
            5.0,
        )
        self._high_timeout = self._load_timeout(
            "core.event.listener_timeout.high_seconds",
            high_timeout_seconds,
            5.0,
        )

        logger.debug(
            "EventBus initialized",
            extra={
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: override, then config, then default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        return self._config_manager.get_float(key, default)

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = [
            p
            for p in sig.parameters.values()
            if p.default is inspect.Parameter.empty
            and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
        ]
        if len(params) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier, used for unsubscribe()

        Raises:
            ValueError: callback does not take exactly one payload argument
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        listeners = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in listeners):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        listeners.append(listener)
        listeners.sort(key=lambda lst: lst.sort_key)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        listeners = self._listeners.get(event_name, [])
        remaining = [lst for lst in listeners if lst.identifier != identifier]
        removed = len(remaining) < len(listeners)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        self._listeners.clear()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(lst) for lst in self._listeners.values())
        return len(self._collect(event_name, consume_once=False))

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _collect(self, event_name: str, *, consume_once: bool) -> list[EventListener]:
        selected: list[EventListener] = []
        for key in list(self._listeners):
            if not self._router.matches(event_name, key):
                continue
            listeners = self._listeners[key]
            selected.extend(listeners)
            if consume_once:
                kept = [lst for lst in listeners if not lst.once]
                if kept:
                    self._listeners[key] = kept
                else:
                    del self._listeners[key]

        selected.sort(key=lambda lst: lst.sort_key)
        return selected

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver an event to every matching listener.

        Returns:
            Results from CRITICAL, HIGH and NORMAL listeners. Failed or
            timed-out listeners contribute None. LOW listeners are not awaited.
        """
        listeners = self._collect(event_name, consume_once=True)

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )
        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(
                    await self._run_with_timeout(event_name, data, listener, self._critical_timeout)
                )
            elif listener.priority is ListenerPriority.HIGH:
                results.append(
                    await self._run_with_timeout(event_name, data, listener, self._high_timeout)
                )

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(event_name, data, lst) for lst in normal)
                )
            )

        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = asyncio.get_running_loop().create_task(
                    self._run_listener(event_name, data, listener)
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority listeners. Used at shutdown and in tests."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

    async def _run_with_timeout(
        self,
        event_name: str,
        data: EventPayload,
        listener: EventListener,
        timeout: float,
    ) -> Any:
        if timeout <= 0:
            return await self._run_listener(event_name, data, listener)
        try:
            return await asyncio.wait_for(
                self._run_listener(event_name, data, listener), timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self, event_name: str, data: EventPayload, listener: EventListener
    ) -> Any:
        try:
            result = listener.callback(data)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None
