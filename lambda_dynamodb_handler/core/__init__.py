"""Core functionality for the DynamoDB stream handler.

This module contains the foundational utilities used across all other modules:
- Configuration management and the configuration cache
- Error hierarchy and retry helpers
- Logging, log entries and error metrics
"""

from .config import CONFIG_ITEMS, Config
from .config_cache import ConfigCache, ConfigItem

__all__ = ["CONFIG_ITEMS", "Config", "ConfigCache", "ConfigItem"]
