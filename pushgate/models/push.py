from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Optional
from xml.sax.saxutils import escape

from pydantic import BaseModel, Field

from pushgate.core.exceptions import ErrorKind
from pushgate.models.subscription import ProtocolKind, utcnow


class Urgency(str, Enum):
    VERY_LOW = "very-low"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class PushMessage(BaseModel):
    """Send-time message. Has no identity of its own."""

    body: str
    title: Optional[str] = None
    ttl: int = Field(default=3600, ge=0)
    urgency: Urgency = Urgency.NORMAL
    # WNS channels only; Web Push ignores it
    toast: bool = False

    def to_payload(self, protocol_kind: ProtocolKind) -> str:
        """JSON document delivered to the application instance."""
        if protocol_kind is ProtocolKind.WEB_PUSH_VAPID:
            default_title, payload_type = "Web Push Notification", "vapid"
        else:
            default_title, payload_type = "WNS Notification", "wns"
        return json.dumps(
            {
                "title": self.title or default_title,
                "message": self.body,
                "timestamp": utcnow().strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
                "type": payload_type,
            }
        )

    def to_toast_xml(self) -> str:
        """ToastGeneric document shown by the WNS client instead of a raw payload."""
        title = escape(self.title or "WNS Notification")
        return (
            "<toast><visual><binding template=\"ToastGeneric\">"
            f"<text>{title}</text><text>{escape(self.body)}</text>"
            "</binding></visual></toast>"
        )


class PushResult(BaseModel):
    """Outcome of a single delivery attempt."""

    success: bool
    status_code: int = 0
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    sent_at: datetime = Field(default_factory=utcnow)

    endpoint: Optional[str] = None
    device_id: Optional[str] = None
    protocol_kind: Optional[ProtocolKind] = None

    # Informational WNS response headers
    device_connection_status: Optional[str] = None
    notification_status: Optional[str] = None
    debug_trace: Optional[str] = None
