"""Base interface for parameter sources."""

from abc import ABC, abstractmethod
from typing import Dict, Sequence


class ParameterSource(ABC):
    """Abstract base class for stores the configuration cache reads from."""

    @abstractmethod
    def fetch_parameters(
        self, names: Sequence[str], with_decryption: bool = True
    ) -> Dict[str, str]:
        """Fetch a batch of parameters.

        Args:
            names: Fully qualified parameter names
            with_decryption: Whether encrypted values should be decrypted

        Returns:
            Dictionary mapping each found name to its value; names that do not
            exist are left out
        """
        pass


class AWSParameterSource(ParameterSource):
    """Base class for AWS-backed parameter sources."""

    def __init__(self, aws_session=None):
        """Initialize AWS parameter source.

        Args:
            aws_session: Boto3 session for AWS API calls
        """
        self.aws_session = aws_session

    @abstractmethod
    def get_client(self):
        """Get the appropriate AWS service client."""
        pass
