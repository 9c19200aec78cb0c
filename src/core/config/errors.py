"""
Configuration error hierarchy.

Exception Hierarchy
-------------------
ConfigError (base)
└── ConfigValidationError (type/shape validation failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     manager.get_int("progression.xp.level_quantum")
    ... except ConfigError as e:
    ...     logger.error(f"Config lookup failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when a configuration value has the wrong type or shape.

    Typed accessors on ConfigManager raise this when a YAML value cannot be
    coerced to the requested type.
    """