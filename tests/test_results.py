import asyncio

import pytest

from pushgate.core.exceptions import AuthFailure, ErrorKind, InvalidKeyEncoding, TransportFailure
from pushgate.models import ProtocolKind
from pushgate.services.results import ResultClassifier, error_kind_for_status
from tests.stubs import RAW_CHANNEL


@pytest.mark.parametrize(
    "status_code, kind",
    [
        (401, ErrorKind.AUTH_FAILURE),
        (403, ErrorKind.AUTH_FAILURE),
        (404, ErrorKind.INVALID_SUBSCRIPTION),
        (410, ErrorKind.INVALID_SUBSCRIPTION),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.TRANSPORT_FAILURE),
        (503, ErrorKind.TRANSPORT_FAILURE),
        (400, ErrorKind.UNKNOWN),
        (413, ErrorKind.UNKNOWN),
    ],
)
def test_error_kind_for_status(status_code, kind):
    assert error_kind_for_status(status_code) is kind


@pytest.mark.parametrize("status_code", [200, 201, 202, 204])
def test_2xx_is_success(status_code):
    result = ResultClassifier().classify(status_code, {}, "", endpoint=RAW_CHANNEL, device_id="d1")

    assert result.success
    assert result.error_kind is None
    assert result.status_code == status_code
    assert result.device_id == "d1"


def test_failure_message_prefers_error_description_header():
    headers = {
        "X-WNS-Error-Description": "Channel expired",
        "X-WNS-DeviceConnectionStatus": "disconnected",
        "X-WNS-NotificationStatus": "dropped",
        "X-WNS-Debug-Trace": "trace-1",
    }
    result = ResultClassifier().classify(410, headers, "body text", protocol_kind=ProtocolKind.VENDOR_RAW)

    assert not result.success
    assert result.error_kind is ErrorKind.INVALID_SUBSCRIPTION
    assert result.message == "Channel expired"
    assert result.device_connection_status == "disconnected"
    assert result.notification_status == "dropped"
    assert result.debug_trace == "trace-1"


def test_failure_message_falls_back_to_body_then_status():
    classifier = ResultClassifier()
    assert classifier.classify(500, None, "  upstream down ").message == "upstream down"
    assert classifier.classify(500, None, "").message == "Push failed: 500 Internal Server Error"


def test_success_keeps_informational_headers():
    result = ResultClassifier().classify(200, {"x-wns-notificationstatus": "received"}, "")
    assert result.notification_status == "received"


@pytest.mark.parametrize(
    "exc, kind, status_code",
    [
        (AuthFailure(401, "denied"), ErrorKind.AUTH_FAILURE, 401),
        (TransportFailure("timed out"), ErrorKind.TRANSPORT_FAILURE, 0),
        (InvalidKeyEncoding("bad key"), ErrorKind.INVALID_KEY_ENCODING, 0),
        (asyncio.TimeoutError(), ErrorKind.CANCELLED, 0),
        (RuntimeError("surprise"), ErrorKind.UNKNOWN, 0),
    ],
)
def test_from_error(exc, kind, status_code):
    result = ResultClassifier().from_error(exc, device_id="d1")

    assert not result.success
    assert result.error_kind is kind
    assert result.status_code == status_code
    assert result.message
