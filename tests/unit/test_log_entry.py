#!/usr/bin/env python3
"""Test structured log entries."""

import os
import sys
from unittest.mock import Mock

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from lambda_dynamodb_handler.core.errors import RefreshConfigError
from lambda_dynamodb_handler.core.log_entry import LogEntryBuilder, detect_event_source
from lambda_dynamodb_handler.core.utils import mask_json_data

STREAM_EVENT = {
    "Records": [
        {"eventID": "1", "eventSource": "aws:dynamodb", "eventName": "MODIFY"},
        {"eventID": "2", "eventSource": "aws:dynamodb", "eventName": "INSERT"},
    ]
}


def create_builder(event=None):
    aws_context = Mock(aws_request_id="req-1", function_name="order-handler")
    return LogEntryBuilder("corr-1", event if event is not None else STREAM_EVENT, aws_context)


def test_builder_requires_identifiers():
    with pytest.raises(ValueError):
        LogEntryBuilder("", STREAM_EVENT, Mock())
    with pytest.raises(ValueError):
        LogEntryBuilder("corr-1", STREAM_EVENT, None)


def test_log_entry_carries_identifiers():
    builder = create_builder().set_transaction_id("tx-1")

    entry = builder.with_message("hello").with_data({"a": 1}).build_log_entry()

    assert entry.info["correlationId"] == "corr-1"
    assert entry.info["lambdaRequestId"] == "req-1"
    assert entry.info["serviceName"] == "order-handler"
    assert entry.info["transactionId"] == "tx-1"
    assert entry.info["message"] == "hello"
    assert entry.info["data"] == {"a": 1}


def test_message_and_data_apply_to_next_entry_only():
    builder = create_builder()
    builder.with_message("first").with_data({"a": 1}).build_log_entry()

    entry = builder.build_log_entry()

    assert entry.info["message"] == ""
    assert entry.info["data"] == {}


def test_debug_to_info_reduces_info_only():
    builder = create_builder()

    entry = builder.with_data({"email": "a@b.c"}).build_log_entry(mask_json_data)

    assert entry.debug["data"] == {"email": "a@b.c"}
    assert entry.info["data"] == {"email": "****"}

    with pytest.raises(TypeError):
        builder.build_log_entry("not callable")


def test_service_request_entry_describes_event():
    entry = create_builder().build_service_request_log_entry(STREAM_EVENT)

    metadata = entry.info["serviceRequest"]["metadata"]
    assert metadata == {"eventSource": "isDynamoDBStream", "recordCount": 2}

    with pytest.raises(ValueError):
        create_builder().build_service_request_log_entry(None)


def test_error_entry_uses_wrapped_error_stack():
    try:
        raise KeyError("LogLevel")
    except KeyError as cause:
        error = RefreshConfigError(log_detail={"original_error": cause})

    entry = create_builder().build_error_log_entry(error)

    assert entry.info["message"] == "Error RefreshConfigError Occurred"
    assert entry.info["error"]["data"]["code"] == "SYST-9004"
    assert "KeyError" in entry.info["error"]["metadata"]["errorStack"]


def test_error_entry_for_plain_exception():
    entry = create_builder().with_message("boom").build_error_log_entry(RuntimeError("bad"))

    assert entry.info["message"] == "boom"
    assert entry.info["error"]["data"] == {"name": "RuntimeError", "message": "bad"}

    with pytest.raises(TypeError):
        create_builder().build_error_log_entry("not an error")


def test_custom_entry():
    entry = create_builder().build_custom_log_entry({"count": 3})
    assert entry.info["customData"] == {"custom": {"count": 3}}

    with pytest.raises(TypeError):
        create_builder().build_custom_log_entry(["not", "a", "dict"])


def test_http_request_entry_requires_uri():
    with pytest.raises(ValueError):
        create_builder().build_http_request_log_entry({"method": "POST"})


@pytest.mark.parametrize(
    "event, source",
    [
        ({"Records": [{"eventSource": "aws:sqs"}]}, "isSqs"),
        ({"httpMethod": "GET"}, "isApiGatewayHttp"),
        ({"source": "aws.events"}, "isScheduledEvent"),
        ({"anything": 1}, "isDirectLambdaCall"),
        ("text", "isUnknown"),
    ],
)
def test_detect_event_source(event, source):
    assert detect_event_source(event) == source
