from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pushgate.core.exceptions import ErrorKind
from pushgate.models import DeviceSummary, ProtocolKind, PushResult, Urgency


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Register a WNS raw channel."""

    device_id: str = Field(..., min_length=1, max_length=200)
    channel_uri: str = Field(..., max_length=2048)
    user_id: Optional[str] = Field(default=None, max_length=200)


class RegisterResponse(CamelModel):
    success: bool = True
    device_id: str
    registered_at: datetime


class SubscribeRequest(CamelModel):
    """Register a Web Push channel with its VAPID private key."""

    device_id: str = Field(..., min_length=1, max_length=200)
    channel_uri: str = Field(..., max_length=2048)
    private_key: str = Field(..., description="Base64 PKCS8 VAPID private key")
    p256dh: Optional[str] = Field(default=None, max_length=200, description="Encryption key")
    auth: Optional[str] = Field(default=None, max_length=100, description="Auth secret")


class SubscribeResponse(CamelModel):
    success: bool = True
    device_id: str
    type: str = "vapid"


class SendRequest(CamelModel):
    device_id: str
    message: str
    title: Optional[str] = None
    ttl: Optional[int] = Field(default=None, ge=0)
    urgency: Urgency = Urgency.NORMAL
    toast: bool = Field(default=False, description="Send a WNS toast instead of a raw notification")


class BroadcastRequest(CamelModel):
    message: str
    title: Optional[str] = None
    ttl: Optional[int] = Field(default=None, ge=0)
    device_ids: Optional[List[str]] = None
    toast: bool = False


class PushResultRead(CamelModel):
    success: bool
    status_code: int
    error_kind: Optional[ErrorKind]
    message: str
    sent_at: datetime
    endpoint: Optional[str]
    device_id: Optional[str]
    type: Optional[ProtocolKind]
    device_connection_status: Optional[str] = None
    notification_status: Optional[str] = None
    debug_trace: Optional[str] = None

    @classmethod
    def from_result(cls, result: PushResult) -> "PushResultRead":
        data = result.model_dump()
        data["type"] = data.pop("protocol_kind")
        return cls.model_validate(data)


class DeviceSummaryRead(CamelModel):
    device_id: str
    type: ProtocolKind
    registered_at: datetime

    @classmethod
    def from_summary(cls, summary: DeviceSummary) -> "DeviceSummaryRead":
        return cls(
            device_id=summary.device_id,
            type=summary.protocol_kind,
            registered_at=summary.registered_at,
        )


class DeleteResponse(CamelModel):
    success: bool


class VapidKeysRead(CamelModel):
    public_key: str = Field(..., description="Base64url uncompressed point")
    private_key: str = Field(..., description="Base64 PKCS8 DER")


class ServerStatus(CamelModel):
    service: str
    status: str = "running"
    timestamp: datetime
    wns_devices: int
    vapid_devices: int
    wns_configured: bool


class ErrorResponse(CamelModel):
    success: bool = False
    error_kind: ErrorKind
    message: str
