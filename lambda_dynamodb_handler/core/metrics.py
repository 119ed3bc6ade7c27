"""Error metrics collected per invocation and reported to CloudWatch."""

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Optional

import boto3

from .logging import get_logger

METRIC_NAME = "Error"


class ErrorMetrics:
    """Counts errors by name and publishes them as the ``Error`` metric.

    Each datum has the dimensions ``Type`` (error name), ``FunctionName`` and
    ``Environment``.
    """

    def __init__(
        self,
        function_name: str,
        namespace: str,
        cloudwatch_client=None,
        environment_provider: Optional[Callable[[], Optional[str]]] = None,
    ):
        """Initialize error metrics.

        Args:
            function_name: Value of the ``FunctionName`` dimension
            namespace: CloudWatch metric namespace
            cloudwatch_client: CloudWatch client (created lazily if None)
            environment_provider: Returns the value of the ``Environment`` dimension
        """
        self.function_name = function_name
        self.namespace = namespace
        self._client = cloudwatch_client
        self._environment_provider = environment_provider or (lambda: None)
        self._samples: Counter = Counter()
        self.logger = get_logger("lambda_dynamodb_handler.metrics")

    def get_client(self):
        if self._client is None:
            self._client = boto3.client("cloudwatch")
        return self._client

    @property
    def samples(self):
        return dict(self._samples)

    def add_sample(self, error_name: str):
        self._samples[error_name] += 1

    def reset(self):
        self._samples.clear()

    def report_metrics(self) -> bool:
        """Publish collected samples and reset them.

        Failures to publish are logged, never raised.

        Returns:
            True if metric data was published
        """
        if not self._samples:
            return False

        self.logger.info("Reporting Error Metrics", error_types=list(self._samples))
        timestamp = datetime.now(timezone.utc)
        environment = self._environment_provider() or "UNKNOWN"
        metric_data = [
            {
                "MetricName": METRIC_NAME,
                "Dimensions": [
                    {"Name": "Type", "Value": error_name},
                    {"Name": "FunctionName", "Value": self.function_name},
                    {"Name": "Environment", "Value": environment},
                ],
                "Timestamp": timestamp,
                "Unit": "Count",
                "Value": count,
            }
            for error_name, count in self._samples.items()
        ]
        self.reset()

        try:
            self.get_client().put_metric_data(
                Namespace=self.namespace, MetricData=metric_data
            )
        except Exception as e:
            self.logger.error(f"Failed to put error metrics: {e}", exc_info=True)
            return False

        self.logger.verbose("Succeeded putting metrics data", count=len(metric_data))
        return True
