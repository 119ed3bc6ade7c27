"""Structured log entries carrying the identifiers of the current invocation.

A ``LogEntryBuilder`` is created once per invocation. Message and data set
with ``with_message`` / ``with_data`` apply to the next built entry only.
Every builder returns a ``LogEntry`` with a full ``debug`` payload and an
``info`` payload that has secrets masked and may be reduced further by an
optional ``debug_to_info`` transform.
"""

import json
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

from .errors import BaseError
from .utils import is_valid_field, mask_json_data, safe_get

AUTHORIZATION_KEYS = ("Authorization", "authorization", "x-api-key")


@dataclass(frozen=True)
class LogEntry:
    debug: Dict[str, Any]
    info: Dict[str, Any]


def _identity(output):
    return output


def _json_copy(data: Any) -> Any:
    return json.loads(json.dumps(data, default=str))


def detect_event_source(event: Any) -> str:
    """Name the kind of Lambda trigger that produced ``event``."""
    if not isinstance(event, dict):
        return "isUnknown"
    record_source = safe_get(event, ["Records", 0, "eventSource"])
    if record_source == "aws:dynamodb":
        return "isDynamoDBStream"
    if record_source == "aws:sqs":
        return "isSqs"
    if "httpMethod" in event or "requestContext" in event:
        return "isApiGatewayHttp"
    if event.get("source") == "aws.events":
        return "isScheduledEvent"
    return "isDirectLambdaCall"


class LogEntryBuilder:
    """Builds log entries for one Lambda invocation."""

    def __init__(self, correlation_id: str, event: Any, aws_context: Any):
        if not is_valid_field(correlation_id) or event is None or aws_context is None:
            raise ValueError("LogEntryBuilder needs correlation_id, event and aws_context")

        self.identifiers: Dict[str, Optional[str]] = {
            "correlationId": correlation_id,
            "lambdaRequestId": getattr(aws_context, "aws_request_id", None),
            "apiGatewayRequestId": safe_get(event, ["context", "apiGatewayRequestId"]),
            "serviceName": getattr(aws_context, "function_name", None),
            "externalRefId": None,
            "transactionId": None,
        }
        self._message = ""
        self._data: Any = {}

    def set_external_ref_id(self, ref_id: str) -> "LogEntryBuilder":
        self.identifiers["externalRefId"] = ref_id
        return self

    def set_transaction_id(self, transaction_id: str) -> "LogEntryBuilder":
        self.identifiers["transactionId"] = transaction_id
        return self

    def with_message(self, message: str) -> "LogEntryBuilder":
        self._message = message
        return self

    def with_data(self, data: Any) -> "LogEntryBuilder":
        """Attach a JSON copy of ``data``; values that cannot be copied are stringified."""
        if data is None:
            return self
        try:
            self._data = json.loads(json.dumps(data))
        except (TypeError, ValueError):
            self._data = str(data)
        return self

    def _dump(self) -> Dict[str, Any]:
        output = {"data": self._data, "message": self._message}
        self._data = {}
        self._message = ""
        return output

    def _entry(self, output: Dict[str, Any], debug_to_info: Callable, mask: bool = False):
        if not callable(debug_to_info):
            raise TypeError("debug_to_info must be callable")
        info = mask_json_data(output, AUTHORIZATION_KEYS) if mask else output
        return LogEntry(debug=output, info=debug_to_info(info))

    def build_log_entry(self, debug_to_info: Callable = _identity) -> LogEntry:
        return self._entry({**self.identifiers, **self._dump()}, debug_to_info)

    def build_custom_log_entry(
        self, custom: Dict[str, Any], debug_to_info: Callable = _identity
    ) -> LogEntry:
        if not isinstance(custom, dict):
            raise TypeError("build_custom_log_entry custom parameter should be a dict")
        output = {**self.identifiers, **self._dump(), "customData": {"custom": _json_copy(custom)}}
        return self._entry(output, debug_to_info)

    def build_error_log_entry(
        self, error: BaseException, debug_to_info: Callable = _identity
    ) -> LogEntry:
        """Entry for an error, including the stack of the wrapped original error."""
        if not isinstance(error, BaseException):
            raise TypeError("build_error_log_entry needs an exception")

        temp = self._dump()
        if isinstance(error, BaseError):
            error_data = error.to_dict()
            original = error.original_error
            stack_source = original if isinstance(original, BaseException) else error
        else:
            error_data = {"name": type(error).__name__, "message": str(error)}
            stack_source = error

        output = {
            **self.identifiers,
            "data": temp["data"],
            "message": temp["message"] or f"Error {error_data['name']} Occurred",
            "error": {
                "data": error_data,
                "metadata": {"errorStack": _format_stack(stack_source)},
            },
        }
        return self._entry(output, debug_to_info)

    def build_service_request_log_entry(
        self, request: Any, debug_to_info: Callable = _identity
    ) -> LogEntry:
        """Entry for the event that started the invocation."""
        if request is None:
            raise ValueError("build_service_request_log_entry needs a request")
        request_copy = _json_copy(request)
        output = {
            **self.identifiers,
            **self._dump(),
            "serviceRequest": {
                "data": request_copy,
                "metadata": {
                    "eventSource": detect_event_source(request_copy),
                    "recordCount": len(safe_get(request_copy, ["Records"], [])),
                },
            },
        }
        return self._entry(output, debug_to_info)

    def build_service_response_log_entry(
        self, response: Any, debug_to_info: Callable = _identity
    ) -> LogEntry:
        output = {
            **self.identifiers,
            **self._dump(),
            "serviceResponse": {"data": _json_copy(response)},
        }
        return self._entry(output, debug_to_info)

    def build_http_request_log_entry(
        self, options: Dict[str, Any], debug_to_info: Callable = _identity
    ) -> LogEntry:
        """Entry for an outbound HTTP request; ``options`` needs at least ``uri``."""
        if not isinstance(options, dict):
            raise TypeError("build_http_request_log_entry options should be a dict")
        if not is_valid_field(options.get("uri")):
            raise ValueError("build_http_request_log_entry options need a uri")
        options_copy = _json_copy(options)
        output = {
            **self.identifiers,
            **self._dump(),
            "externalHTTPRequest": {
                "data": options_copy,
                "metadata": _describe_uri(options_copy["uri"]),
            },
        }
        return self._entry(output, debug_to_info, mask=True)

    def build_http_response_log_entry(
        self, response: Dict[str, Any], debug_to_info: Callable = _identity
    ) -> LogEntry:
        if not isinstance(response, dict):
            raise TypeError("build_http_response_log_entry response should be a dict")
        response_copy = _json_copy(response)
        output = {
            **self.identifiers,
            **self._dump(),
            "externalHTTPResponse": {
                "data": response_copy,
                "metadata": {"statusCode": response_copy.get("statusCode")},
            },
        }
        return self._entry(output, debug_to_info, mask=True)


def _describe_uri(uri: str) -> Dict[str, Any]:
    parsed = urlparse(uri)
    return {
        "href": uri,
        "protocol": parsed.scheme,
        "hostname": parsed.hostname,
        "port": parsed.port,
        "pathname": parsed.path,
        "searchParams": parse_qs(parsed.query),
    }


def _format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))
