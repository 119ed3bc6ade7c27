"""HTTP client for the guest notification API."""

import json
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from ..core.error_handling import ErrorHandler, RetryConfig, with_retry
from ..core.errors import DigitalGuestRequestError, WebhookRequestError
from ..core.log_entry import LogEntryBuilder
from ..core.logging import get_logger
from ..core.utils import safe_get

ORDER_COMPLETED_EVENT = "ORDER_COMPLETED"


class GuestApiServerError(Exception):
    """A 5xx response; retried before being reported as unavailable."""

    def __init__(self, response: requests.Response):
        super().__init__(f"Guest API returned {response.status_code}")
        self.response = response


def _json_default(value: Any) -> Any:
    # DynamoDB numbers are deserialized as Decimal
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, set):
        return sorted(value, key=str)
    return str(value)


def build_notification(new_image: Dict[str, Any]) -> Dict[str, Any]:
    """Request body announcing a completed order to its customer."""
    return {
        "customerId": safe_get(new_image, ["orderPayload", "customer", "customerId"]),
        "orderId": new_image.get("orderId"),
        "eventType": ORDER_COMPLETED_EVENT,
        "order": new_image.get("orderPayload"),
    }


class GuestApiClient:
    """Posts order notifications to the guest API.

    Timeouts, connection failures and 5xx responses are retried and then
    raised as ``DigitalGuestRequestError``; any other failure response is
    raised as ``WebhookRequestError``.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        session: Optional[requests.Session] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger("lambda_dynamodb_handler.guest_api_client")

        if retry_config is None:
            retry_config = ErrorHandler().get_http_retry_config(
                max_attempts=max_attempts,
                retryable_exceptions=(
                    requests.exceptions.Timeout,
                    requests.exceptions.ConnectionError,
                    GuestApiServerError,
                ),
            )
        self._post_with_retry = with_retry(retry_config)(self._post)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-api-key": self.api_key}

    def _post(self, body: str) -> requests.Response:
        response = self.session.post(
            self.url, data=body, headers=self._headers(), timeout=self.timeout
        )
        if response.status_code >= 500:
            raise GuestApiServerError(response)
        return response

    def notify_order_completed(
        self, new_image: Dict[str, Any], log_builder: Optional[LogEntryBuilder] = None
    ) -> requests.Response:
        """Send the ``ORDER_COMPLETED`` notification for a stream record's new image.

        Raises:
            DigitalGuestRequestError: If the API is unavailable after retries
            WebhookRequestError: If the API rejects the request
        """
        notification = build_notification(new_image)
        body = json.dumps(notification, default=_json_default)

        if log_builder is not None:
            self.logger.info(
                **log_builder.with_message("Calling guest notification API")
                .build_http_request_log_entry(
                    {
                        "method": "POST",
                        "uri": self.url,
                        "headers": self._headers(),
                        "body": json.loads(body),
                    }
                )
                .info
            )

        try:
            response = self._post_with_retry(body)
        except GuestApiServerError as e:
            raise DigitalGuestRequestError(
                log_detail={
                    "original_error": e,
                    "statusCode": e.response.status_code,
                    "orderId": notification["orderId"],
                }
            ) from e
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise DigitalGuestRequestError(
                log_detail={"original_error": e, "orderId": notification["orderId"]}
            ) from e
        except requests.exceptions.RequestException as e:
            raise WebhookRequestError(
                log_detail={"original_error": e, "orderId": notification["orderId"]}
            ) from e

        if log_builder is not None:
            self.logger.info(
                **log_builder.with_message("Guest notification API responded")
                .build_http_response_log_entry(
                    {"statusCode": response.status_code, "body": response.text[:1000]}
                )
                .info
            )

        if not response.ok:
            raise WebhookRequestError(
                log_detail={
                    "statusCode": response.status_code,
                    "body": response.text[:1000],
                    "orderId": notification["orderId"],
                }
            )
        return response
