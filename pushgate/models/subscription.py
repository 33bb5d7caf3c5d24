from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProtocolKind(str, Enum):
    """Delivery protocol selected for an endpoint."""

    VENDOR_RAW = "vendor_raw"
    WEB_PUSH_VAPID = "web_push_vapid"


class DeviceSubscription(BaseModel):
    """Delivery subscription for one device."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    endpoint: str
    protocol_kind: ProtocolKind
    user_id: Optional[str] = None

    # Web Push only; vendor raw credentials are minted per send
    private_key_b64: Optional[str] = None
    p256dh: Optional[str] = None  # Client encryption key
    auth: Optional[str] = None  # Client auth secret

    registered_at: datetime = Field(default_factory=utcnow)

    def summary(self) -> "DeviceSummary":
        return DeviceSummary(
            device_id=self.device_id,
            protocol_kind=self.protocol_kind,
            registered_at=self.registered_at,
        )


class DeviceSummary(BaseModel):
    """Public view of a subscription. Never carries key material."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    protocol_kind: ProtocolKind
    registered_at: datetime
