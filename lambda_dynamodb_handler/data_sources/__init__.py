"""Data sources for parameters and outbound notifications."""

from .base import AWSParameterSource, ParameterSource
from .guest_api_client import GuestApiClient
from .ssm_parameter_store import SSMParameterStore

__all__ = ["AWSParameterSource", "ParameterSource", "GuestApiClient", "SSMParameterStore"]
