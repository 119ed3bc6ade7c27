"""Base processor interface for stream events."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from ..core.context import ServiceContext
from ..core.logging import get_logger


class BaseProcessor(ABC):
    """Abstract base class for event processors.

    Provides common functionality for:
    - Logging with context
    - Input validation
    - Processing statistics
    """

    def __init__(self, context: ServiceContext):
        """Initialize processor with context.

        Args:
            context: Service context with config, logger, metrics, etc.
        """
        self.context = context
        self.logger = get_logger(
            f"lambda_dynamodb_handler.processors.{self.__class__.__name__.lower()}"
        )
        self._processing_stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "processed": 0,
            "notified": 0,
            "ignored": 0,
            "failed": 0,
        }

    @abstractmethod
    def process(self, event: Any) -> Dict[str, int]:
        """Process a Lambda event and return a summary.

        Args:
            event: Lambda event

        Returns:
            Counts of processed records
        """
        pass

    @abstractmethod
    def validate_input(self, event: Any) -> bool:
        """Validate the event before processing.

        Raises:
            InvalidEventFromSourceError: If validation fails with details
        """
        pass

    def get_processing_stats(self) -> Dict[str, int]:
        return dict(self._processing_stats)

    def reset_stats(self):
        self._processing_stats = self._empty_stats()
