"""
Progression Logging Subsystem

Purpose
-------
Provide an async-safe logging subsystem for the progression engine, offering:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of per-decision context via ContextVars.
- Correlation IDs for end-to-end traceability of one decision submission.
- Async-safe logging via a QueueHandler + QueueListener architecture.
- Bounded log queue with graceful degradation on overload.
- Console output (JSON in production, colored human text in development)
  plus an optional rotating JSON file handler.

Responsibilities
----------------
- Initialize and configure the global logging stack (``setup_logging``).
- Enrich all log records with contextual fields:
  - user_id, mission_id
  - correlation_id, operation, component
- Emit structured logs in JSON format suitable for aggregation systems.
- Avoid blocking the asyncio event loop with synchronous file I/O.

Design Decisions
----------------
- ``setup_logging()`` is explicit: the embedding application calls it once at
  startup. Importing this module has no side effects beyond defining objects.
- ContextFilter is attached to the queue handler so the context captured is
  the one active in the task that logged, not in the listener thread.
- Extra fields passed via ``logger.info("msg", extra={...})`` are merged into
  the JSON ``extra`` object.

Dependencies
------------
- src.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import (
    QueueHandler,
    QueueListener,
    TimedRotatingFileHandler,
)
from pathlib import Path
from typing import Any, Dict, Optional

from src.core.config.config import Config


# ============================================================================
# Request / Operation Context (ContextVars)
# ============================================================================

_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context",
    default={},
)


# ============================================================================
# Config / Environment
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Configuration for the logging subsystem."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DAILY_BASENAME: str = "progression.json.log"
    DAILY_BACKUP_COUNT: int = 1

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return self.is_production
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        if self.is_production or self.use_json:
            return False
        return bool(Config.LOG_COLORS) and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        if not hasattr(record, "user_id"):
            record.user_id = context.get("user_id", "N/A")
        if not hasattr(record, "mission_id"):
            record.mission_id = context.get("mission_id", "N/A")
        record.correlation_id = context.get("correlation_id") or "N/A"
        record.component = context.get("component") or record.name.split(".", 2)[-1]
        if not hasattr(record, "operation"):
            record.operation = context.get("operation", "N/A")

        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        prefix = self.COLORS.get(original, "")
        reset = self.COLORS["RESET"] if prefix else ""

        if prefix:
            record.levelname = f"{prefix}{original}{reset}"

        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    STANDARD_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    CONTEXT_ATTRS = {
        "user_id",
        "mission_id",
        "correlation_id",
        "component",
        "operation",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        created_dt = datetime.fromtimestamp(record.created, tz=timezone.utc)

        log_data: Dict[str, Any] = {
            "timestamp": created_dt.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra: Dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key in self.STANDARD_ATTRS or key in self.CONTEXT_ATTRS:
                continue
            if key.startswith("_"):
                continue
            if key in {"levelname", "name", "message", "asctime"}:
                continue
            extra[key] = val

        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Custom Queue Handler & Listener
# ============================================================================


class ProgressionQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("Logging queue full; dropping log record.\n")


class ProgressionQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        sys.stderr.write("Logging handler error while processing record.\n")


# ============================================================================
# Global Setup
# ============================================================================

_queue_listener: Optional[QueueListener] = None


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )

    return handler


def _build_daily_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME

    handler = TimedRotatingFileHandler(
        filename=str(log_file),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(*, file_logging: bool = True) -> None:
    """
    Configure the root logger. Idempotent.

    Args:
        file_logging: Also write JSON lines to ``LOGS_DIR`` with daily rotation.
    """
    global _queue_listener

    root = logging.getLogger()

    if getattr(root, "_progression_logging_initialized", False):
        return

    root.setLevel(LOGGER_CONFIG.log_level)
    root.handlers.clear()

    handlers = [_build_console_handler()]
    if file_logging:
        handlers.append(_build_daily_file_handler())

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)

    _queue_listener = ProgressionQueueListener(
        log_queue,
        *handlers,
        respect_handler_level=True,
    )
    _queue_listener.start()

    queue_handler = ProgressionQueueHandler(log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())

    root.addHandler(queue_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    setattr(root, "_progression_logging_initialized", True)

    log = logging.getLogger(__name__)
    log.info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "file_logging": file_logging,
            "queue_max_size": LOGGER_CONFIG.QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging() -> None:
    global _queue_listener

    root = logging.getLogger()

    if not getattr(root, "_progression_logging_initialized", False):
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem.")

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    for handler in list(root.handlers):
        handler.flush()
        handler.close()
        root.removeHandler(handler)

    setattr(root, "_progression_logging_initialized", False)


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind user/mission context to every log record emitted inside the block.

    Works as a sync and async context manager:

    >>> async with LogContext(user_id="u-1", mission_id="m-1", operation="record_decision"):
    ...     logger.info("Decision accepted")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        mission_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "user_id": str(user_id) if user_id is not None else "N/A",
            "mission_id": str(mission_id) if mission_id is not None else "N/A",
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id or self._generate_correlation_id(),
            **extra,
        }

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return str(uuid.uuid4())[:8]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    user_id: Optional[str] = None,
    mission_id: Optional[str] = None,
    component: Optional[str] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
    **extra: Any,
) -> None:
    current = _request_context.get({}).copy()

    if user_id is not None:
        current["user_id"] = str(user_id)
    if mission_id is not None:
        current["mission_id"] = str(mission_id)
    if component is not None:
        current["component"] = component
    if operation is not None:
        current["operation"] = operation
    if correlation_id:
        current["correlation_id"] = correlation_id

    current.update(extra)
    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})
