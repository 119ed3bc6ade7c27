#!/usr/bin/env python3
"""Test the guest notification processor."""

import json
import os
import sys
from unittest.mock import Mock

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from lambda_dynamodb_handler.core.context import ServiceContext
from lambda_dynamodb_handler.core.errors import (
    DigitalGuestRequestError,
    InvalidEventFromSourceError,
    JSONParseError,
    WebhookRequestError,
)
from lambda_dynamodb_handler.processors.guest_notifier import (
    GuestNotificationProcessor,
    parse_order_payload,
    unmarshall_image,
)


def order_image(status="Completed", provider="DigitalOrder", customer_id="cust-9", payload=None):
    if payload is None:
        customer = {"customerId": customer_id} if customer_id else {}
        payload = json.dumps({"customer": customer})
    return {
        "orderId": {"S": "order-1"},
        "inboundProvider": {"S": provider},
        "orderStatus": {"S": status},
        "orderPayload": {"S": payload},
        "version": {"N": "2"},
    }


def stream_record(event_name="MODIFY", new_image=None, old_image=None, event_id="evt-1"):
    return {
        "eventID": event_id,
        "eventName": event_name,
        "eventSource": "aws:dynamodb",
        "dynamodb": {
            "OldImage": old_image or order_image(status="Processing"),
            "NewImage": new_image or order_image(),
        },
    }


def create_processor(client=None):
    context = ServiceContext(log=Mock(), metrics=Mock())
    aws_context = Mock(aws_request_id="req-1", function_name="handler")
    context.begin_invocation({"Records": []}, aws_context)

    client = client or Mock()
    processor = GuestNotificationProcessor(context, lambda: client)
    processor.logger = Mock()
    return processor, client


def test_unmarshall_image():
    image = unmarshall_image(order_image())

    assert image["orderId"] == "order-1"
    assert image["version"] == 2
    assert unmarshall_image(None) == {}


def test_parse_order_payload():
    image = {"orderPayload": '{"customer": {"customerId": "c"}}'}
    parse_order_payload(image, "evt-1")
    assert image["orderPayload"] == {"customer": {"customerId": "c"}}

    with pytest.raises(JSONParseError) as excinfo:
        parse_order_payload({"orderPayload": "{not json"}, "evt-2")
    assert excinfo.value.log_detail["eventID"] == "evt-2"


def test_completed_digital_order_notifies_guest():
    processor, client = create_processor()

    stats = processor.process({"Records": [stream_record()]})

    assert stats == {"processed": 1, "notified": 1, "ignored": 0, "failed": 0}
    new_image = client.notify_order_completed.call_args.args[0]
    assert new_image["orderPayload"]["customer"]["customerId"] == "cust-9"


@pytest.mark.parametrize(
    "record, reason",
    [
        (stream_record(event_name="INSERT"), "event type is not MODIFY"),
        (stream_record(new_image=order_image(provider="Web")), "inbound provider"),
        (stream_record(new_image=order_image(status="Shipped")), "orderStatus"),
        (stream_record(new_image=order_image(customer_id=None)), "customer is not registered"),
    ],
)
def test_non_qualifying_records_are_ignored(record, reason):
    processor, client = create_processor()

    stats = processor.process({"Records": [record]})

    assert stats["ignored"] == 1
    assert stats["notified"] == 0
    client.notify_order_completed.assert_not_called()
    message = processor.logger.info.call_args.kwargs["message"]
    assert message.startswith("Ignoring EVENT evt-1 as")
    assert reason in message


def test_invalid_event_is_rejected():
    processor, _ = create_processor()

    with pytest.raises(InvalidEventFromSourceError):
        processor.process({"detail": {}})


def test_malformed_image_is_rejected():
    processor, _ = create_processor()
    record = stream_record(new_image={"orderStatus": {"BAD": "x"}})

    with pytest.raises(InvalidEventFromSourceError):
        processor.process({"Records": [record]})


def test_invalid_payload_fails_event():
    processor, _ = create_processor()
    record = stream_record(new_image=order_image(payload="{oops"))

    with pytest.raises(JSONParseError):
        processor.process({"Records": [record]})


def test_guest_api_unavailable_fails_event():
    client = Mock()
    client.notify_order_completed.side_effect = DigitalGuestRequestError()
    processor, _ = create_processor(client)

    with pytest.raises(DigitalGuestRequestError):
        processor.process({"Records": [stream_record()]})
    assert processor.get_processing_stats()["failed"] == 1


def test_rejected_notification_is_logged_and_skipped():
    client = Mock()
    client.notify_order_completed.side_effect = [WebhookRequestError(), None]
    processor, _ = create_processor(client)

    stats = processor.process(
        {"Records": [stream_record(event_id="evt-1"), stream_record(event_id="evt-2")]}
    )

    assert stats == {"processed": 2, "notified": 1, "ignored": 0, "failed": 1}
    logged = [call.kwargs.get("message") for call in processor.logger.info.call_args_list]
    assert "Event evt-1 failed with error" in logged


def test_stats_reset_between_events():
    processor, _ = create_processor()

    processor.process({"Records": [stream_record()]})
    stats = processor.process({"Records": []})

    assert stats == {"processed": 0, "notified": 0, "ignored": 0, "failed": 0}
