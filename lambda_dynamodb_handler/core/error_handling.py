"""Retry and error classification utilities for outbound calls."""

import functools
import random
import time
from enum import Enum
from typing import Callable, Tuple, Type

from .logging import get_logger


class RetryStrategy(Enum):
    """Retry strategy types."""

    EXPONENTIAL_BACKOFF = "exponential_backoff"
    LINEAR_BACKOFF = "linear_backoff"
    FIXED_INTERVAL = "fixed_interval"
    EXPONENTIAL_BACKOFF_WITH_JITTER = "exponential_backoff_with_jitter"


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        retryable_exceptions: Tuple[Type[Exception], ...],
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 5.0,
        strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF_WITH_JITTER,
        jitter_factor: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize retry configuration.

        Args:
            retryable_exceptions: Exception types that should trigger retries
            max_attempts: Maximum number of attempts, including the first call
            base_delay: Base delay between retries (seconds)
            max_delay: Maximum delay between retries (seconds)
            strategy: Retry strategy to use
            jitter_factor: Jitter factor for randomizing delays (0.0-1.0)
            sleep: Function used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not retryable_exceptions:
            raise ValueError("retryable_exceptions must name at least one exception type")

        self.retryable_exceptions = tuple(retryable_exceptions)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.strategy = strategy
        self.jitter_factor = jitter_factor
        self.sleep = sleep


def with_retry(retry_config: RetryConfig):
    """Decorator for adding retry logic to functions.

    Only ``retry_config.retryable_exceptions`` are retried; anything else
    propagates on the first failure.

    Args:
        retry_config: Retry configuration

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(f"lambda_dynamodb_handler.retry.{func.__name__}")

            for attempt in range(retry_config.max_attempts):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(f"Succeeded on attempt {attempt + 1}")
                    return result

                except retry_config.retryable_exceptions as e:
                    if attempt == retry_config.max_attempts - 1:
                        logger.error(
                            f"All {retry_config.max_attempts} attempts failed. Last error: {e}"
                        )
                        raise

                    delay = _calculate_delay(
                        attempt,
                        retry_config.base_delay,
                        retry_config.max_delay,
                        retry_config.strategy,
                        retry_config.jitter_factor,
                    )

                    logger.warning(
                        f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s..."
                    )
                    retry_config.sleep(delay)

            # This should never be reached
            raise RuntimeError("Retry logic error")

        return wrapper

    return decorator


def _calculate_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    strategy: RetryStrategy,
    jitter_factor: float,
) -> float:
    """Calculate delay for retry attempt.

    Args:
        attempt: Attempt number (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        strategy: Retry strategy
        jitter_factor: Jitter factor for randomization

    Returns:
        Delay in seconds
    """
    if strategy == RetryStrategy.FIXED_INTERVAL:
        delay = base_delay

    elif strategy == RetryStrategy.LINEAR_BACKOFF:
        delay = base_delay * (attempt + 1)

    elif strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
        delay = base_delay * (2**attempt)

    elif strategy == RetryStrategy.EXPONENTIAL_BACKOFF_WITH_JITTER:
        delay = base_delay * (2**attempt)
        # Add jitter to prevent thundering herd
        jitter = delay * jitter_factor * random.random()
        delay += jitter

    else:
        delay = base_delay

    return min(delay, max_delay)


class ErrorHandler:
    """Classifies AWS and HTTP failures for logging and retry decisions."""

    def __init__(self):
        self.logger = get_logger("lambda_dynamodb_handler.error_handler")

    def classify_aws_error(self, error: Exception) -> Tuple[bool, str]:
        """Classify AWS error for retry decision.

        Args:
            error: Exception to classify

        Returns:
            Tuple of (should_retry: bool, error_category: str)
        """
        error_str = str(error).lower()

        # Throttling errors - always retry
        if any(
            keyword in error_str
            for keyword in ["throttling", "throttled", "rate exceeded"]
        ):
            return True, "throttling"

        # Network/connection errors - retry
        if any(
            keyword in error_str
            for keyword in ["timeout", "timed out", "connection", "network", "dns"]
        ):
            return True, "network"

        # Service unavailable - retry
        if any(
            keyword in error_str
            for keyword in ["service unavailable", "503", "502", "504"]
        ):
            return True, "service_unavailable"

        # Authentication errors - don't retry
        if any(
            keyword in error_str
            for keyword in ["access denied", "accessdenied", "unauthorized", "401", "403"]
        ):
            return False, "authentication"

        # Not found errors - don't retry
        if any(
            keyword in error_str
            for keyword in ["not found", "notfound", "404", "does not exist"]
        ):
            return False, "not_found"

        # Parameter validation errors - don't retry
        if any(
            keyword in error_str
            for keyword in ["validation", "invalid parameter", "bad request", "400"]
        ):
            return False, "validation"

        return True, "unknown"

    def get_http_retry_config(
        self, retryable_exceptions: Tuple[Type[Exception], ...], max_attempts: int = 3
    ) -> RetryConfig:
        """Get retry configuration for calls to external HTTP APIs."""
        return RetryConfig(
            retryable_exceptions,
            max_attempts=max_attempts,
            base_delay=0.5,
            max_delay=5.0,
            strategy=RetryStrategy.EXPONENTIAL_BACKOFF_WITH_JITTER,
            jitter_factor=0.1,
        )
