"""
In-memory device registry shared by concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

import httpx

from pushgate.core.exceptions import InvalidSubscription, NotFound
from pushgate.core.logging import redact
from pushgate.models import DeviceSubscription, DeviceSummary, ProtocolKind

logger = logging.getLogger(__name__)


def validate_endpoint(endpoint: str) -> None:
    """Raise ``InvalidSubscription`` unless ``endpoint`` is a well-formed absolute URI."""
    if not endpoint or not endpoint.strip():
        raise InvalidSubscription("Endpoint must not be empty")
    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL as exc:
        raise InvalidSubscription(f"Malformed endpoint: {exc}") from exc
    if not url.is_absolute_url or not url.host:
        raise InvalidSubscription(f"Endpoint is not an absolute URI: {redact(endpoint, 60)}")


class DeviceRegistry:
    """Maps device ids to subscriptions. Last registration wins."""

    def __init__(self):
        self._devices: Dict[str, DeviceSubscription] = {}
        self._lock = asyncio.Lock()

    async def register(self, record: DeviceSubscription) -> None:
        """Insert or overwrite the subscription for ``record.device_id``."""
        if not record.device_id or not record.device_id.strip():
            raise InvalidSubscription("Device id must not be empty")
        validate_endpoint(record.endpoint)

        async with self._lock:
            replaced = record.device_id in self._devices
            self._devices[record.device_id] = record

        action = "re-registered" if replaced else "registered"
        logger.info(
            f"Device {action}: {record.device_id} ({record.protocol_kind.value}), "
            f"endpoint={redact(record.endpoint, 60)}"
        )

    async def lookup(self, device_id: str) -> DeviceSubscription:
        async with self._lock:
            record = self._devices.get(device_id)
        if record is None:
            raise NotFound(f"Device {device_id} is not registered")
        return record

    async def list(self) -> List[DeviceSummary]:
        """Summaries ordered by registration time."""
        async with self._lock:
            records = list(self._devices.values())
        records.sort(key=lambda record: record.registered_at)
        return [record.summary() for record in records]

    async def device_ids(self) -> List[str]:
        async with self._lock:
            return list(self._devices.keys())

    async def remove(self, device_id: str) -> bool:
        async with self._lock:
            removed = self._devices.pop(device_id, None) is not None
        if removed:
            logger.info(f"Device removed: {device_id}")
        return removed

    async def count(self) -> Dict[ProtocolKind, int]:
        async with self._lock:
            counts = {kind: 0 for kind in ProtocolKind}
            for record in self._devices.values():
                counts[record.protocol_kind] += 1
        return counts
