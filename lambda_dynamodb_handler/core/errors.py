"""Error hierarchy shared by the handler, the config cache and the processors.

Every error carries a stable ``code`` and optional ``log_detail`` /
``response_detail`` payloads. System errors replace themselves with a generic
``InternalError`` when surfaced to a caller (``override_response_error``).
"""

from typing import Any, Dict, List, Optional


class BaseError(Exception):
    """Base class for all errors raised by this package."""

    code = "SYST-0000"
    http_code: Optional[int] = None
    retry = False

    def __init__(
        self,
        message: str,
        log_detail: Optional[Dict[str, Any]] = None,
        response_detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.log_detail = log_detail
        self.response_detail = response_detail
        self.override_response_error: Optional["BaseError"] = None

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def original_error(self) -> Optional[BaseException]:
        """Wrapped exception, if one was passed in ``log_detail``."""
        if self.log_detail:
            return self.log_detail.get("original_error")
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the error for log entries."""
        data = {
            "name": self.name,
            "message": self.message,
            "code": self.code,
            "retry": self.retry,
        }
        if self.http_code is not None:
            data["httpCode"] = self.http_code
        if self.log_detail:
            data["logDetail"] = {
                key: (str(value) if isinstance(value, BaseException) else value)
                for key, value in self.log_detail.items()
            }
        if self.response_detail:
            data["responseDetail"] = self.response_detail
        return data


class UnknownError(BaseError):
    code = "SYST-9999"
    http_code = 500
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Unknown Internal System Error", log_detail, response_detail)


class InternalError(BaseError):
    code = "SYST-9998"
    http_code = 500
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Internal System Error", log_detail, response_detail)


class ServiceSystemError(BaseError):
    """Base for system errors whose details are hidden from callers."""

    def __init__(self, message, log_detail=None, response_detail=None):
        super().__init__(message, log_detail, response_detail)
        self.override_response_error = InternalError()


class JSONParseError(ServiceSystemError):
    code = "SYST-9002"
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Unexpected end of JSON input", log_detail, response_detail)


class NoEnvProvidedError(ServiceSystemError):
    """Raised when the invocation has no stage environment."""

    code = "SYST-9003"

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("No Environment Provided", log_detail, response_detail)


class RefreshConfigError(ServiceSystemError):
    """Raised when the configuration refresh fails."""

    code = "SYST-9004"

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Refresh Configuration Error", log_detail, response_detail)


class InvalidEventFromSourceError(ServiceSystemError):
    code = "SYST-9007"
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Invalid Event From Source Error", log_detail, response_detail)


class WebhookRequestError(ServiceSystemError):
    """Client error response (4xx) from an outbound webhook."""

    code = "SYST-9008"
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Webhook Request Error", log_detail, response_detail)


class DigitalGuestRequestError(ServiceSystemError):
    """Guest notification API unavailable (5xx or connection failure)."""

    code = "SYST-9009"
    retry = True

    def __init__(self, log_detail=None, response_detail=None):
        super().__init__("Digital Guest Request Error", log_detail, response_detail)


# Configuration cache errors


class ConfigCacheError(BaseError):
    """Base class for configuration cache failures."""

    pass


class ConfigurationError(ConfigCacheError):
    """Raised for an invalid cache setup, such as a non-positive expiry."""

    code = "CONF-0001"

    def __init__(self, message="Invalid configuration cache settings", log_detail=None):
        super().__init__(message, log_detail)


class EnvironmentNotSetError(ConfigCacheError):
    code = "CONF-0002"

    def __init__(self, message="env must be set before refreshing config", log_detail=None):
        super().__init__(message, log_detail)


class MissingKeysError(ConfigCacheError):
    """Raised when the parameter store returns fewer values than requested."""

    code = "CONF-0003"

    def __init__(self, missing: List[str], log_detail=None):
        super().__init__(f"missing keys: {', '.join(missing)}", log_detail)
        self.missing = list(missing)


class NotYetRefreshedError(ConfigCacheError):
    code = "CONF-0004"

    def __init__(
        self, message="configuration must be refreshed before accessing", log_detail=None
    ):
        super().__init__(message, log_detail)
