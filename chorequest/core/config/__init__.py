"""
Configuration management subsystem.

- **config.py**: Static configuration from environment variables
- **manager.py**: Engine tunables from YAML files under ``config/``
"""

from chorequest.core.config.config import Config, Environment
from chorequest.core.config.manager import ConfigManager

__all__ = ["Config", "ConfigManager", "Environment"]
