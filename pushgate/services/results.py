from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Mapping, Optional

import httpx

from pushgate.core.exceptions import AuthFailure, ErrorKind, PushError
from pushgate.models import ProtocolKind, PushResult

logger = logging.getLogger(__name__)

ERROR_DESCRIPTION_HEADER = "X-WNS-Error-Description"
DEVICE_CONNECTION_STATUS_HEADER = "X-WNS-DeviceConnectionStatus"
NOTIFICATION_STATUS_HEADER = "X-WNS-NotificationStatus"
DEBUG_TRACE_HEADER = "X-WNS-Debug-Trace"


def error_kind_for_status(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.AUTH_FAILURE
    if status_code in (404, 410):
        return ErrorKind.INVALID_SUBSCRIPTION
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if 500 <= status_code < 600:
        return ErrorKind.TRANSPORT_FAILURE
    return ErrorKind.UNKNOWN


def _status_text(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown status"


class ResultClassifier:
    """Turns transport outcomes into ``PushResult`` values."""

    def classify(
        self,
        status_code: int,
        headers: Mapping[str, str] | None,
        body: str | None,
        *,
        endpoint: Optional[str] = None,
        device_id: Optional[str] = None,
        protocol_kind: Optional[ProtocolKind] = None,
    ) -> PushResult:
        headers = httpx.Headers(headers or {})
        success = 200 <= status_code < 300

        if success:
            error_kind = None
            message = "Push notification sent successfully"
        else:
            error_kind = error_kind_for_status(status_code)
            message = (
                headers.get(ERROR_DESCRIPTION_HEADER)
                or (body or "").strip()
                or f"Push failed: {status_code} {_status_text(status_code)}"
            )
            logger.warning(f"Push to device {device_id} failed: {status_code} - {message}")

        return PushResult(
            success=success,
            status_code=status_code,
            error_kind=error_kind,
            message=message,
            endpoint=endpoint,
            device_id=device_id,
            protocol_kind=protocol_kind,
            device_connection_status=headers.get(DEVICE_CONNECTION_STATUS_HEADER),
            notification_status=headers.get(NOTIFICATION_STATUS_HEADER),
            debug_trace=headers.get(DEBUG_TRACE_HEADER),
        )

    def from_response(self, response: httpx.Response, **context) -> PushResult:
        return self.classify(response.status_code, response.headers, response.text, **context)

    def from_error(
        self,
        exc: BaseException,
        *,
        endpoint: Optional[str] = None,
        device_id: Optional[str] = None,
        protocol_kind: Optional[ProtocolKind] = None,
    ) -> PushResult:
        """Failed result for an error raised before a push response arrived."""
        status_code = 0
        if isinstance(exc, PushError):
            error_kind = exc.kind
            message = exc.message
            if isinstance(exc, AuthFailure):
                status_code = exc.status_code
        elif isinstance(exc, (asyncio.TimeoutError, asyncio.CancelledError)):
            error_kind = ErrorKind.CANCELLED
            message = "Push cancelled: deadline exceeded"
        else:
            error_kind = ErrorKind.UNKNOWN
            message = f"Push error: {exc}"

        return PushResult(
            success=False,
            status_code=status_code,
            error_kind=error_kind,
            message=message,
            endpoint=endpoint,
            device_id=device_id,
            protocol_kind=protocol_kind,
        )
