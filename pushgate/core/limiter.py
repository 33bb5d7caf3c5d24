"""Rate limiting configuration."""

from __future__ import annotations

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def build_limiter(default_limit: str, storage_uri: str = "memory://") -> Limiter:
    """Create a limiter applied to every route through ``SlowAPIMiddleware``."""
    limiter = Limiter(
        key_func=get_remote_address,
        storage_uri=storage_uri,
        default_limits=[default_limit],
    )
    logger.info(f"Rate limiter configured: {default_limit} ({storage_uri})")
    return limiter
