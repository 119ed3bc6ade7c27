"""Service context shared by the entry point and the processors.

Long-lived collaborators (logger, configuration, config cache, metrics) are
set once per process; ``begin_invocation`` replaces the per-invocation state.
"""

import uuid
from typing import Any, Dict, Optional

from .config import Config
from .config_cache import ConfigCache
from .errors import BaseError
from .log_entry import LogEntryBuilder
from .logging import HandlerLogger, get_logger
from .metrics import ErrorMetrics
from .utils import is_valid_field, safe_get

CORRELATION_ID_HEADERS = ("X-Correlation-Id", "x-correlation-id")


def extract_correlation_id(event: Any, aws_context: Any) -> str:
    """Correlation id from the event, else the Lambda request id, else a new uuid."""
    candidates = [safe_get(event, ["correlationId"])]
    candidates += [safe_get(event, ["headers", header]) for header in CORRELATION_ID_HEADERS]
    candidates.append(getattr(aws_context, "aws_request_id", None))
    for candidate in candidates:
        if is_valid_field(candidate):
            return str(candidate)
    return str(uuid.uuid4())


class ServiceContext:
    """Holds everything a handler invocation needs to log, configure and report."""

    def __init__(
        self,
        log: Optional[HandlerLogger] = None,
        config: Optional[Config] = None,
        config_cache: Optional[ConfigCache] = None,
        metrics: Optional[ErrorMetrics] = None,
    ):
        self.log = log or get_logger()
        self.config = config or Config()
        self.config_cache = config_cache
        self.metrics = metrics

        self.event: Any = None
        self.aws_context: Any = None
        self.correlation_id: Optional[str] = None
        self.log_builder: Optional[LogEntryBuilder] = None
        self.common_error_details: Dict[str, Any] = {}

    def begin_invocation(self, event: Any, aws_context: Any) -> LogEntryBuilder:
        """Reset per-invocation state and create the invocation's log builder."""
        self.event = event
        self.aws_context = aws_context
        self.correlation_id = extract_correlation_id(event, aws_context)
        self.common_error_details = {}
        self.log_builder = LogEntryBuilder(self.correlation_id, event, aws_context)
        return self.log_builder

    def log_error(self, error: BaseException):
        """Log a caught error and count it in the error metrics."""
        name = error.name if isinstance(error, BaseError) else type(error).__name__
        if self.log_builder is not None:
            entry = self.log_builder.with_data(self.common_error_details or None)
            self.log.error(**entry.build_error_log_entry(error).info)
        else:
            self.log.error(name, error=str(error), details=self.common_error_details)

        if self.metrics is not None:
            self.metrics.add_sample(name)
        else:
            self.log.error("Failed to collect error metrics")

    @staticmethod
    def construct_failure_object(code: str, message: str) -> Dict[str, Any]:
        return {"status": "Failure", "reason": {"code": code, "message": message}}
