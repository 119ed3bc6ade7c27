"""
AWS Lambda Function: DynamoDB order stream handler.

Refreshes configuration from SSM Parameter Store and notifies guests of
completed digital orders. Collaborators are created on the first invocation
and reused while the Lambda container stays warm.
"""

from typing import Any, Dict, List, Optional

from .core.config import CONFIG_ITEMS, Config
from .core.config_cache import ConfigCache
from .core.context import ServiceContext
from .core.errors import BaseError, NoEnvProvidedError, RefreshConfigError, UnknownError
from .core.logging import HandlerLogger, get_logger
from .core.metrics import ErrorMetrics
from .core.utils import is_valid_field, mask_json_data
from .data_sources.base import ParameterSource
from .data_sources.guest_api_client import GuestApiClient
from .data_sources.ssm_parameter_store import SSMParameterStore
from .processors.guest_notifier import GuestNotificationProcessor

GUEST_CLIENT_ALIASES = ("GuestNotificationUrl", "GuestNotificationApiKey")


class StreamHandler:
    """Lambda handler for the order stream; call it with ``(event, context)``."""

    def __init__(self, context: ServiceContext):
        self.context = context
        self._guest_client: Optional[GuestApiClient] = None

        cache = context.config_cache
        cache.on_initialize(self._on_config_initialized)
        cache.on_change(self._on_config_changed)

        self.processor = GuestNotificationProcessor(context, self.get_guest_client)

    def _on_config_initialized(self, aliases: List[str]):
        self.context.log.verbose("Configuration initialized", aliases=aliases)

    def _on_config_changed(self, aliases: List[str]):
        self.context.log.info("Configuration changed", aliases=aliases)
        if any(alias in GUEST_CLIENT_ALIASES for alias in aliases):
            self._guest_client = None

    def get_guest_client(self) -> GuestApiClient:
        """Guest API client built from the current configuration values."""
        if self._guest_client is None:
            cache = self.context.config_cache
            config = self.context.config
            self._guest_client = GuestApiClient(
                cache.get_value("GuestNotificationUrl"),
                cache.get_value("GuestNotificationApiKey"),
                timeout=config.guest_api_timeout_seconds,
                max_attempts=config.guest_api_max_retries,
            )
        return self._guest_client

    def setup_env(self):
        """Point the config cache at the stage given by ``STAGE_ENV``."""
        stage_env = self.context.config.stage_env
        cache = self.context.config_cache
        builder = self.context.log_builder

        if not is_valid_field(stage_env):
            raise NoEnvProvidedError()

        current_env = cache.get_environment()
        if current_env == stage_env:
            return

        if current_env is None:
            self.context.log.info(
                **builder.with_message(f"Setting Environment to {stage_env}")
                .build_log_entry()
                .info
            )
        else:
            # The stage should never change within one container
            self.context.log.warning(
                **builder.with_message(
                    f"Changing Environment from {current_env} to {stage_env}"
                )
                .build_log_entry()
                .info
            )
        cache.set_environment(stage_env)

    def refresh_config(self):
        try:
            self.context.config_cache.refresh_if_stale()
        except Exception as e:
            raise RefreshConfigError(log_detail={"original_error": e}) from e

    def apply_log_level(self):
        """Set the log level from the ``LogLevel`` configuration value."""
        level = self.context.config_cache.get_value("LogLevel")
        if not is_valid_field(level):
            return
        try:
            self.context.log.set_level(level)
        except ValueError:
            self.context.log.warning("Ignoring unknown log level", level=level)

    def __call__(self, event: Dict[str, Any], aws_context) -> Dict[str, Any]:
        context = self.context
        function_name = context.config.function_name
        builder = context.begin_invocation(event, aws_context)

        context.log.info(
            **builder.with_message(f"{function_name} received an event")
            .build_service_request_log_entry(event, mask_json_data)
            .info
        )

        try:
            self.setup_env()
            self.refresh_config()
            self.apply_log_level()

            summary = self.processor.process(event)
            response = {"status": "SUCCESS", **summary}

            context.log.info(
                **builder.with_message(f"Calling callback on {function_name}")
                .build_service_response_log_entry(response)
                .info
            )
            return response

        except Exception as err:
            error = err if isinstance(err, BaseError) else UnknownError(
                log_detail={"original_error": err}
            )
            builder.with_message(f"{function_name} service has error occurred")
            context.log_error(error)

            failure = error.override_response_error or error
            context.log.info(
                **builder.with_message(f"Calling callback on {function_name}")
                .with_data(context.construct_failure_object(failure.code, failure.message))
                .build_log_entry()
                .info
            )
            if error is err:
                raise
            raise error from err

        finally:
            if context.metrics is not None:
                context.metrics.report_metrics()


def build_handler(
    config: Optional[Config] = None,
    parameter_store: Optional[ParameterSource] = None,
    metrics: Optional[ErrorMetrics] = None,
    logger: Optional[HandlerLogger] = None,
) -> StreamHandler:
    """Create a handler with its own config cache and collaborators."""
    config = config or Config.for_lambda()
    logger = logger or get_logger()
    parameter_store = parameter_store or SSMParameterStore(
        region=config.aws_region, request_timeout_ms=config.ssm_request_timeout_ms
    )

    cache = ConfigCache(
        CONFIG_ITEMS,
        parameter_store,
        expiry_ms=config.config_expiry_ms,
        max_workers=config.max_workers,
    )
    metrics = metrics or ErrorMetrics(
        config.function_name,
        config.metric_namespace,
        environment_provider=cache.get_environment,
    )
    context = ServiceContext(log=logger, config=config, config_cache=cache, metrics=metrics)
    return StreamHandler(context)


_handler: Optional[StreamHandler] = None


def lambda_handler(event: Dict[str, Any], context) -> Dict[str, Any]:
    """
    Lambda handler for DynamoDB stream events.

    Args:
        event: DynamoDB stream event
        context: Lambda context object

    Returns:
        Summary of processed records; raises on failure so the stream batch is retried
    """
    global _handler
    if _handler is None:
        _handler = build_handler()
    return _handler(event, context)
