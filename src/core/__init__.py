"""
Core infrastructure layer for the progression engine.

Purpose
-------
Provide a single import surface for the core infrastructure subsystems:

- Configuration (Config from the environment, ConfigManager for tunables)
- Database subsystem (DatabaseService, declarative Base)
- Event bus (EventBus, ListenerPriority)
- Logging (structured logging, logger factory, LogContext)
- Validation (InputValidator)
- Infrastructure exceptions

Non-Responsibilities
--------------------
- Implement infra logic (delegated to submodules)
- Progression rules
- Any side effects beyond simple re-exports

Feature modules import from the submodules directly; this package exists for
application bootstrap code.
"""

from __future__ import annotations

from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database import Base, DatabaseService
from src.core.event import EventBus, ListenerPriority
from src.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    PersistenceUnavailableError,
    ProgressionInfrastructureException,
)
from src.core.logging import LogContext, get_logger, setup_logging, shutdown_logging
from src.core.validation import InputValidator

__all__ = [
    # Config
    "Config",
    "ConfigManager",
    # Database
    "Base",
    "DatabaseService",
    # Events
    "EventBus",
    "ListenerPriority",
    # Exceptions
    "ProgressionInfrastructureException",
    "ConfigurationError",
    "PersistenceUnavailableError",
    "ErrorSeverity",
    # Logging
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "LogContext",
    # Validation
    "InputValidator",
]
