"""Lambda DynamoDB Handler

An AWS Lambda function for DynamoDB order streams. Configuration is read from
Systems Manager Parameter Store through an in-memory cache with TTL-based
refresh, batched fetches and change notifications.
"""

__version__ = "1.0.0"

from .core.config import Config
from .core.config_cache import ConfigCache, ConfigItem

__all__ = ["Config", "ConfigCache", "ConfigItem"]
