"""
ConfigManager: YAML-backed tunable configuration access.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable progression values
  (XP constants, difficulty bonuses, achievement thresholds).
- Back configuration with YAML files from the `config/` directory.

Responsibilities
----------------
- Load and deep-merge every YAML file found under the config directory.
- Resolve dot-notation keys with a caller-supplied default.
- Accept an overrides mapping (deep-merged last) so tests and embedding
  applications can tune values without touching files.

Key Design Decisions
--------------------
- Instance-based: services receive a ConfigManager through their
  constructor; there is no process-wide cache.
- YAML is the single source for defaults; overrides win.
- Malformed YAML files are logged and skipped; a missing directory yields an
  empty configuration so callers fall back to their defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Union

import yaml

from src.core.config.config import Config
from src.core.config.errors import ConfigValidationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """
    Tunable configuration with dot-notation access.

    Examples
    --------
    >>> manager = ConfigManager()
    >>> manager.get("progression.xp.level_quantum", 200)
    200
    >>> manager = ConfigManager(overrides={"progression": {"xp": {"level_quantum": 100}}})
    >>> manager.get_int("progression.xp.level_quantum")
    100
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)
        self._values: Dict[str, Any] = {}
        self._load_yaml_configs()
        if overrides:
            self._deep_merge_dict(self._values, dict(overrides))

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, Mapping) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            elif isinstance(value, Mapping):
                target[key] = {}
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    def _load_yaml_configs(self) -> None:
        config_dir = self._config_dir
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                self._deep_merge_dict(self._values, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(self._values.keys()),
            },
        )

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> manager.get("progression.difficulty_bonus.Expert", 1.0)
        2.0
        """
        value: Any = self._values
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return default if value is None else value

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(
                f"Config key '{key}' must be an integer, got {value!r}"
            ) from exc

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigValidationError(
                f"Config key '{key}' must be a number, got {value!r}"
            ) from exc

    def get_section(self, key: str) -> Dict[str, Any]:
        """Return a copy of a nested mapping, or an empty dict."""
        value = self.get(key, {})
        if not isinstance(value, dict):
            raise ConfigValidationError(
                f"Config key '{key}' must be a mapping, got {type(value).__name__}"
            )
        return dict(value)

    def get_all_keys(self) -> list[str]:
        return sorted(self._values.keys())
