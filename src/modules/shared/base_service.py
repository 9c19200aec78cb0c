"""
Base Service Foundation

Purpose
-------
Foundation class for the progression services. Services implement the
business flow, open transactions through the injected DatabaseService,
enforce rules and emit domain events after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Handle SQLAlchemy sessions directly
- Contain progression rules

Usage
-----
    class MissionProgressService(BaseService):
        def __init__(self, db_service, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self.db = db_service

        async def record_time(self, user_id: str, mission_id: str, seconds: int):
            # Service logic here, using self.log, self.get_config, self.emit_event
            ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.exceptions import ConfigurationError
from src.modules.shared.exceptions import get_error_severity, is_transient_error, should_alert

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all progression services.

    Args:
        config_manager: Tunables loaded from config/*.yaml
        event_bus: Event bus for post-commit notifications
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: logging.Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None) -> Any:
        return self._config.get(key, default)

    def get_int_config(self, key: str, default: int) -> int:
        return self._config.get_int(key, default)

    def get_positive_int_config(self, key: str, default: int) -> int:
        """
        Integer tunable that must be greater than zero.

        Raises:
            ConfigurationError: If the configured value is zero or negative
        """
        value = self._config.get_int(key, default)
        if value <= 0:
            raise ConfigurationError(key, f"must be a positive integer, got {value}")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event.

        Call only after the transaction that produced ``data`` has committed.

        Args:
            event_type: Type/name of the event
            data: Event payload data
            context: Optional additional context (user_id, mission_id, etc.)
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        """
        Log a service error with full context.

        Errors that do not need attention (retryable or expected) go out at
        WARNING; everything else at ERROR.
        """
        level = logging.ERROR if should_alert(error) else logging.WARNING
        self.log.log(
            level,
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "severity": get_error_severity(error).value,
                "retryable": is_transient_error(error),
                **context,
            },
        )
