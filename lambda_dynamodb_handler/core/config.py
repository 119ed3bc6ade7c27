"""Configuration management for the DynamoDB stream handler."""

from dataclasses import dataclass
from typing import Optional
import os

from .config_cache import DEFAULT_EXPIRY_MS, ConfigItem

FUNCTION_NAME = "lambda-dynamodb-example-handler"

# Parameters read from SSM Parameter Store; /<STAGE_ENV> is prepended to each name
CONFIG_ITEMS = [
    ConfigItem(name="/lambda-dynamodb-example/logLevel", alias="LogLevel"),
    ConfigItem(name="/guest-api/notificationUrl", alias="GuestNotificationUrl"),
    ConfigItem(name="/guest-api/apiKey", alias="GuestNotificationApiKey"),
]


@dataclass
class Config:
    """Runtime settings for the stream handler, read from the Lambda environment."""

    function_name: str = FUNCTION_NAME
    stage_env: Optional[str] = None

    # AWS Settings
    aws_region: str = "us-east-1"

    # Logging Settings
    log_level: str = "INFO"

    # Configuration Cache Settings
    config_expiry_ms: int = DEFAULT_EXPIRY_MS
    ssm_request_timeout_ms: int = 15 * 1000
    max_workers: int = 4

    # Metrics Settings
    metric_namespace: str = "LambdaDynamoDBExample/Lambda"

    # Guest Notification API Settings
    guest_api_timeout_seconds: float = 10.0
    guest_api_max_retries: int = 3

    @classmethod
    def from_env(cls) -> 'Config':
        """Create config from environment variables."""
        return cls(
            function_name=os.getenv('AWS_LAMBDA_FUNCTION_NAME', FUNCTION_NAME),
            stage_env=os.getenv('STAGE_ENV'),
            aws_region=os.getenv('AWS_REGION', os.getenv('AWS_DEFAULT_REGION', 'us-east-1')),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
            config_expiry_ms=int(os.getenv('CONFIG_EXPIRY_MS', str(DEFAULT_EXPIRY_MS))),
            ssm_request_timeout_ms=int(os.getenv('SSM_REQUEST_TIMEOUT_MS', '15000')),
            max_workers=int(os.getenv('MAX_WORKERS', '4')),
            metric_namespace=os.getenv('METRIC_NAMESPACE', 'LambdaDynamoDBExample/Lambda'),
            guest_api_timeout_seconds=float(os.getenv('GUEST_API_TIMEOUT_SECONDS', '10')),
            guest_api_max_retries=int(os.getenv('GUEST_API_MAX_RETRIES', '3')),
        )

    @classmethod
    def for_lambda(cls) -> 'Config':
        """Create Lambda-optimized configuration."""
        config = cls.from_env()

        # Scale workers with memory
        memory_mb = int(os.getenv('AWS_LAMBDA_FUNCTION_MEMORY_SIZE', '128'))
        config.max_workers = max(1, min(config.max_workers, memory_mb // 128))

        return config
