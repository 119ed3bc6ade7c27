"""Guest notifications for completed digital orders from a DynamoDB stream."""

import json
from typing import Any, Callable, Dict

from boto3.dynamodb.types import TypeDeserializer

from ..core.context import ServiceContext
from ..core.errors import (
    BaseError,
    DigitalGuestRequestError,
    InvalidEventFromSourceError,
    JSONParseError,
)
from ..core.utils import safe_get
from ..data_sources.guest_api_client import GuestApiClient
from .base import BaseProcessor

MODIFY = "MODIFY"
DIGITAL_ORDER = "DigitalOrder"
COMPLETED = "Completed"

_deserializer = TypeDeserializer()


def unmarshall_image(image: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a DynamoDB-typed image (``{"S": ...}``) into a plain dict."""
    return {key: _deserializer.deserialize(value) for key, value in (image or {}).items()}


def parse_order_payload(image: Dict[str, Any], event_id: str):
    """Replace a JSON string ``orderPayload`` with the parsed object, in place."""
    payload = image.get("orderPayload")
    if not isinstance(payload, str):
        return
    try:
        image["orderPayload"] = json.loads(payload) if payload else {}
    except ValueError as e:
        raise JSONParseError(log_detail={"original_error": e, "eventID": event_id}) from e


class GuestNotificationProcessor(BaseProcessor):
    """Notifies registered guests when their digital order is completed.

    A record leads to a notification only if it is a ``MODIFY`` of a
    ``DigitalOrder`` whose new status is ``Completed`` and whose payload names
    a customer. Every other record is logged and ignored.
    """

    def __init__(self, context: ServiceContext, client_factory: Callable[[], GuestApiClient]):
        """Initialize processor.

        Args:
            context: Service context of the current invocation
            client_factory: Returns the guest API client to use
        """
        super().__init__(context)
        self._client_factory = client_factory

    def validate_input(self, event: Any) -> bool:
        records = event.get("Records") if isinstance(event, dict) else None
        if not isinstance(records, list):
            raise InvalidEventFromSourceError(
                log_detail={"reason": "event does not contain a Records list"}
            )
        return True

    def process(self, event: Any) -> Dict[str, int]:
        """Handle every record of a stream event.

        Raises:
            InvalidEventFromSourceError: If the event or one of its records is malformed
            JSONParseError: If an order payload is not valid JSON
            DigitalGuestRequestError: If the guest API is unavailable
        """
        self.reset_stats()
        self.validate_input(event)

        for record in event["Records"]:
            self._processing_stats["processed"] += 1
            self.notify_guest(record)

        return self.get_processing_stats()

    def notify_guest(self, record: Dict[str, Any]) -> bool:
        """Send the notification for one record if it qualifies.

        Returns:
            True if the guest was notified
        """
        event_id = record.get("eventID")

        if record.get("eventName") != MODIFY:
            return self._ignore(event_id, "event type is not MODIFY")

        try:
            old_image = unmarshall_image(safe_get(record, ["dynamodb", "OldImage"]))
            new_image = unmarshall_image(safe_get(record, ["dynamodb", "NewImage"]))
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidEventFromSourceError(
                log_detail={"original_error": e, "eventID": event_id}
            ) from e

        if new_image.get("inboundProvider") != DIGITAL_ORDER:
            return self._ignore(event_id, "inbound provider is not DigitalOrder")

        if new_image.get("orderStatus") != COMPLETED:
            return self._ignore(event_id, "orderStatus is not completed")

        parse_order_payload(new_image, event_id)
        parse_order_payload(old_image, event_id)
        self.logger.verbose(
            "Order status transition",
            eventID=event_id,
            oldStatus=old_image.get("orderStatus"),
            newStatus=new_image.get("orderStatus"),
        )

        if not safe_get(new_image, ["orderPayload", "customer", "customerId"]):
            return self._ignore(event_id, "customer is not registered")

        try:
            self._client_factory().notify_order_completed(
                new_image, log_builder=self.context.log_builder
            )
        except DigitalGuestRequestError:
            self._processing_stats["failed"] += 1
            raise
        except BaseError as error:
            self._processing_stats["failed"] += 1
            builder = self.context.log_builder
            if builder is not None:
                self.logger.info(
                    **builder.with_message(f"Event {event_id} failed with error")
                    .build_error_log_entry(error)
                    .info
                )
            else:
                self.logger.info(f"Event {event_id} failed with error", error=str(error))
            return False

        self._processing_stats["notified"] += 1
        return True

    def _ignore(self, event_id: str, reason: str) -> bool:
        self._processing_stats["ignored"] += 1
        message = f"Ignoring EVENT {event_id} as {reason}"
        builder = self.context.log_builder
        if builder is not None:
            self.logger.info(**builder.with_message(message).build_log_entry().info)
        else:
            self.logger.info(message)
        return False
