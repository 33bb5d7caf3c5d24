"""In-memory cache for OAuth access tokens."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Hashable, Optional, Protocol

logger = logging.getLogger(__name__)


class Expiring(Protocol):
    expires_at: datetime


class TokenCache:
    """Holds tokens until ``expires_at - safety_margin``.

    Not thread-safe on its own; the owner serialises access.
    """

    def __init__(self, safety_margin: timedelta = timedelta(minutes=5)):
        self.safety_margin = safety_margin
        self._cache: dict[Hashable, Expiring] = {}

    def get(self, key: Hashable, now: datetime) -> Optional[Expiring]:
        """Return the cached value if it is still usable at ``now``."""
        value = self._cache.get(key)
        if value is None:
            return None
        if now >= value.expires_at - self.safety_margin:
            logger.debug(f"Cached token for {key[0] if isinstance(key, tuple) else key} expired")
            self._cache.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: Expiring) -> None:
        self._cache[key] = value

    def delete(self, key: Hashable) -> None:
        self._cache.pop(key, None)
