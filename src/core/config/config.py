"""
Static configuration management for the Choice Craft progression engine.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. This module
handles non-dynamic configuration that is set at process startup.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup

Non-Responsibilities
--------------------
- Tunable progression values (handled by ConfigManager + YAML)
- Secrets management (use environment variables)

Configuration Categories
------------------------
1. Database: connection URL and pool settings
2. Environment: environment type, logging
3. Directories: logs and YAML config locations

Environment Variables
---------------------
Optional (with defaults):
- DATABASE_URL: SQLAlchemy URL (default: local SQLite file)
- DATABASE_POOL_SIZE: Connection pool size (default: 5)
- DATABASE_MAX_OVERFLOW: Pool overflow (default: 10)
- DATABASE_POOL_RECYCLE: Seconds before recycling connections (default: 1800)
- DATABASE_POOL_TIMEOUT: Seconds to wait for a pooled connection (default: 30)
- DATABASE_STATEMENT_TIMEOUT_MS: PostgreSQL statement timeout (default: 30000)
- DATABASE_ECHO: Echo SQL (default: False)
- ENVIRONMENT: development / testing / staging / production
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON / LOG_COLORS: Console formatting toggles
- LOGS_DIR / CONFIG_DIR: Directory overrides
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not configured yet during bootstrap
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the progression engine.

    All values are loaded from environment variables with sensible defaults.
    Call ``Config.load()`` again after changing the environment (tests do this
    from ``pytest_configure``).

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_testing():
    ...     ...
    """

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = "sqlite:///./choicecraft.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 30_000
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with bounds checking.

        Out-of-range or unparseable values fall back to ``default`` with a
        warning instead of failing startup.

        Example
        -------
        >>> Config._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=200)
        5
        """
        raw_value = os.getenv(key)

        if raw_value is None:
            return default

        try:
            value = int(raw_value)
        except ValueError:
            logging.warning(f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if min_val is not None and value < min_val:
            logging.warning(f"{key}={value} is below minimum {min_val}, using default {default}")
            return default

        if max_val is not None and value > max_val:
            logging.warning(f"{key}={value} exceeds maximum {max_val}, using default {default}")
            return default

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: Optional[bool]) -> Optional[bool]:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)

        if raw_value is None:
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        logging.warning(f"{key}='{raw_value}' is not a valid boolean, using default {default}")
        return default

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        return os.getenv(key, default)

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; call again to pick up
        environment changes.
        """
        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "sqlite:///./choicecraft.db")
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600
        )
        cls.DATABASE_STATEMENT_TIMEOUT_MS = cls._safe_int(
            "DATABASE_STATEMENT_TIMEOUT_MS", 30_000, min_val=100
        )
        cls.DATABASE_ECHO = bool(cls._safe_bool("DATABASE_ECHO", False))

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO").upper()
        if cls.LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            logging.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"
        cls.LOG_JSON = cls._safe_bool("LOG_JSON", None)
        cls.LOG_COLORS = bool(cls._safe_bool("LOG_COLORS", True))

        cls.LOGS_DIR = Path(
            cls._safe_str("LOGS_DIR", str(cls.PROJECT_ROOT / "logs"))
        )
        cls.CONFIG_DIR = Path(
            cls._safe_str("CONFIG_DIR", str(cls.PROJECT_ROOT / "config"))
        )

        if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
            logging.warning(
                "Production environment using a SQLite database - "
                "this may be incorrect"
            )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value


# Load on import
Config.load()
