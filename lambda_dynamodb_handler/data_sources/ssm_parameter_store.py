"""AWS SSM Parameter Store source for the configuration cache."""

from typing import Dict, Sequence

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config_cache import MAX_BATCH_SIZE
from ..core.error_handling import ErrorHandler
from ..core.logging import get_logger
from .base import AWSParameterSource

DEFAULT_SSM_REQUEST_TIMEOUT_MS = 15 * 1000


class SSMParameterStore(AWSParameterSource):
    """Fetches batches of parameters with ``ssm:GetParameters``.

    Errors from AWS are logged with their category and re-raised unchanged;
    retrying is left to the caller.
    """

    def __init__(
        self,
        aws_session=None,
        region=None,
        request_timeout_ms=DEFAULT_SSM_REQUEST_TIMEOUT_MS,
    ):
        """Initialize SSM parameter store.

        Args:
            aws_session: Boto3 session for AWS API calls
            region: AWS region for the SSM client (default from the session/environment)
            request_timeout_ms: Connect and read timeout for each request
        """
        super().__init__(aws_session)
        self.region = region
        self.request_timeout_ms = request_timeout_ms
        self.logger = get_logger("lambda_dynamodb_handler.ssm_parameter_store")
        self._client = None
        self._error_handler = ErrorHandler()

    def get_client(self):
        """Get SSM client with connection reuse."""
        if self._client is None:
            timeout = self.request_timeout_ms / 1000
            boto_config = BotoConfig(connect_timeout=timeout, read_timeout=timeout)
            if self.aws_session:
                self._client = self.aws_session.client(
                    "ssm", region_name=self.region, config=boto_config
                )
            else:
                self._client = boto3.client(
                    "ssm", region_name=self.region, config=boto_config
                )
            self.logger.info(f"Initialized SSM client for region: {self.region or 'default'}")
        return self._client

    def fetch_parameters(
        self, names: Sequence[str], with_decryption: bool = True
    ) -> Dict[str, str]:
        """Fetch up to ``MAX_BATCH_SIZE`` parameters in one request.

        Raises:
            ValueError: If more than ``MAX_BATCH_SIZE`` names are requested
            botocore.exceptions.ClientError: If the request is rejected
            botocore.exceptions.BotoCoreError: If the request cannot be made
        """
        names = list(names)
        if len(names) > MAX_BATCH_SIZE:
            raise ValueError(
                f"GetParameters accepts at most {MAX_BATCH_SIZE} names, got {len(names)}"
            )
        if not names:
            return {}

        try:
            response = self.get_client().get_parameters(
                Names=names, WithDecryption=with_decryption
            )
        except (ClientError, BotoCoreError) as e:
            _, error_category = self._error_handler.classify_aws_error(e)
            self.logger.error(
                f"Failed to fetch parameters from SSM ({error_category}): {e}",
                parameters=names,
            )
            raise

        invalid = response.get("InvalidParameters", [])
        if invalid:
            self.logger.warning("Invalid parameters requested", parameters=invalid)

        return {param["Name"]: param["Value"] for param in response.get("Parameters", [])}
