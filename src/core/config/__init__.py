"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (.env support)
- **manager.py**: tunable progression values from YAML files
- **errors.py**: configuration exception hierarchy

ConfigManager is imported from its module directly
(``from src.core.config.manager import ConfigManager``) because it depends on
the logging subsystem, which itself reads ``Config``.

Usage
-----
```python
from src.core.config import Config
from src.core.config.manager import ConfigManager

db_url = Config.DATABASE_URL
manager = ConfigManager()
quantum = manager.get_int("progression.xp.level_quantum", 200)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.errors import (
    ConfigError,
    ConfigValidationError,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigError",
    "ConfigValidationError",
]
