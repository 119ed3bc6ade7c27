#!/usr/bin/env python3
"""Test the Lambda entry point end to end with fake AWS collaborators."""

import json
import os
import sys
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import lambda_dynamodb_handler.handler as handler_module
from lambda_dynamodb_handler.core.config import Config
from lambda_dynamodb_handler.core.errors import (
    DigitalGuestRequestError,
    NoEnvProvidedError,
    RefreshConfigError,
    UnknownError,
    WebhookRequestError,
)
from lambda_dynamodb_handler.core.metrics import ErrorMetrics
from lambda_dynamodb_handler.handler import build_handler

GUEST_URL = "https://guest.example.com/notifications"

PARAMETERS = {
    "/DEV/lambda-dynamodb-example/logLevel": "verbose",
    "/DEV/guest-api/notificationUrl": GUEST_URL,
    "/DEV/guest-api/apiKey": "api-key",
}


class FakeParameterStore:
    def __init__(self, values):
        self.values = dict(values)
        self.calls = []
        self.error = None

    def fetch_parameters(self, names, with_decryption=True):
        self.calls.append(list(names))
        if self.error is not None:
            raise self.error
        return {name: self.values[name] for name in names if name in self.values}


def completed_order_event():
    payload = json.dumps({"customer": {"customerId": "cust-9"}})
    new_image = {
        "orderId": {"S": "order-1"},
        "inboundProvider": {"S": "DigitalOrder"},
        "orderStatus": {"S": "Completed"},
        "orderPayload": {"S": payload},
    }
    old_image = dict(new_image, orderStatus={"S": "Processing"})
    return {
        "Records": [
            {
                "eventID": "evt-1",
                "eventName": "MODIFY",
                "eventSource": "aws:dynamodb",
                "dynamodb": {"NewImage": new_image, "OldImage": old_image},
            }
        ]
    }


@pytest.fixture
def guest_client_class(monkeypatch):
    client_class = Mock()
    monkeypatch.setattr(handler_module, "GuestApiClient", client_class)
    return client_class


@pytest.fixture
def aws_context():
    return Mock(aws_request_id="req-1", function_name="order-handler")


def create_handler(stage_env="DEV", values=PARAMETERS):
    store = FakeParameterStore(values)
    cloudwatch = Mock()
    config = Config(function_name="order-handler", stage_env=stage_env)
    metrics = ErrorMetrics(config.function_name, config.metric_namespace, cloudwatch_client=cloudwatch)
    handler = build_handler(config=config, parameter_store=store, metrics=metrics, logger=Mock())
    return handler, store, cloudwatch


def reported_error_types(cloudwatch):
    metric_data = cloudwatch.put_metric_data.call_args.kwargs["MetricData"]
    return [datum["Dimensions"][0]["Value"] for datum in metric_data]


def test_completed_order_notifies_guest(guest_client_class, aws_context):
    handler, store, cloudwatch = create_handler()

    response = handler(completed_order_event(), aws_context)

    assert response == {"status": "SUCCESS", "processed": 1, "notified": 1, "ignored": 0, "failed": 0}
    assert store.calls == [list(PARAMETERS)]
    guest_client_class.assert_called_once_with(
        GUEST_URL, "api-key", timeout=10.0, max_attempts=3
    )
    guest_client_class.return_value.notify_order_completed.assert_called_once()
    handler.context.log.set_level.assert_called_with("verbose")
    cloudwatch.put_metric_data.assert_not_called()


def test_configuration_reused_while_fresh(guest_client_class, aws_context):
    handler, store, _ = create_handler()

    handler(completed_order_event(), aws_context)
    handler(completed_order_event(), aws_context)

    assert len(store.calls) == 1
    assert guest_client_class.call_count == 1


def test_missing_stage_env_fails_invocation(guest_client_class, aws_context):
    handler, store, cloudwatch = create_handler(stage_env=None)

    with pytest.raises(NoEnvProvidedError):
        handler(completed_order_event(), aws_context)

    assert store.calls == []
    assert reported_error_types(cloudwatch) == ["NoEnvProvidedError"]


def test_refresh_failure_fails_invocation(guest_client_class, aws_context):
    handler, store, cloudwatch = create_handler()
    store.error = ClientError(
        {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}},
        "GetParameters",
    )

    with pytest.raises(RefreshConfigError) as excinfo:
        handler(completed_order_event(), aws_context)

    assert excinfo.value.__cause__ is store.error
    assert reported_error_types(cloudwatch) == ["RefreshConfigError"]
    guest_client_class.assert_not_called()

    failure = handler.context.log.info.call_args.kwargs["data"]
    assert failure == {
        "status": "Failure",
        "reason": {"code": "SYST-9998", "message": "Internal System Error"},
    }


def test_missing_parameter_fails_refresh(guest_client_class, aws_context):
    values = dict(PARAMETERS)
    del values["/DEV/guest-api/apiKey"]
    handler, _, _ = create_handler(values=values)

    with pytest.raises(RefreshConfigError):
        handler(completed_order_event(), aws_context)


def test_guest_api_unavailable_fails_invocation(guest_client_class, aws_context):
    guest_client_class.return_value.notify_order_completed.side_effect = DigitalGuestRequestError()
    handler, _, cloudwatch = create_handler()

    with pytest.raises(DigitalGuestRequestError):
        handler(completed_order_event(), aws_context)

    assert reported_error_types(cloudwatch) == ["DigitalGuestRequestError"]


def test_rejected_notification_does_not_fail_invocation(guest_client_class, aws_context):
    guest_client_class.return_value.notify_order_completed.side_effect = WebhookRequestError()
    handler, _, cloudwatch = create_handler()

    response = handler(completed_order_event(), aws_context)

    assert response["status"] == "SUCCESS"
    assert response["failed"] == 1
    cloudwatch.put_metric_data.assert_not_called()


def test_unexpected_error_is_wrapped(guest_client_class, aws_context):
    guest_client_class.return_value.notify_order_completed.side_effect = RuntimeError("boom")
    handler, _, cloudwatch = create_handler()

    with pytest.raises(UnknownError) as excinfo:
        handler(completed_order_event(), aws_context)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert reported_error_types(cloudwatch) == ["UnknownError"]


def test_changed_guest_settings_rebuild_client(guest_client_class, aws_context):
    handler, store, _ = create_handler()
    handler(completed_order_event(), aws_context)

    store.values["/DEV/guest-api/notificationUrl"] = "https://guest-v2.example.com/notifications"
    handler.context.config_cache.refresh()
    handler.get_guest_client()

    assert guest_client_class.call_count == 2
    assert guest_client_class.call_args.args[0] == "https://guest-v2.example.com/notifications"


def test_lambda_handler_builds_once(monkeypatch, aws_context):
    built = Mock(return_value={"status": "SUCCESS"})
    build = Mock(return_value=built)
    monkeypatch.setattr(handler_module, "_handler", None)
    monkeypatch.setattr(handler_module, "build_handler", build)

    handler_module.lambda_handler({"Records": []}, aws_context)
    handler_module.lambda_handler({"Records": []}, aws_context)

    build.assert_called_once_with()
    assert built.call_count == 2
