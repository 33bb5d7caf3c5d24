from __future__ import annotations

import logging
from urllib.parse import urlsplit

from pushgate.models import ProtocolKind

logger = logging.getLogger(__name__)

DEFAULT_WEB_PUSH_MARKER = "notify.windows.com/w/"


class DispatchRouter:
    """Selects the delivery protocol for an endpoint.

    WNS hands out Web Push style channels under a dedicated path on its
    notification host; anything else is treated as a raw channel. Ambiguous
    input falls through to the raw protocol so the send fails visibly instead
    of being dropped.
    """

    def __init__(self, web_push_marker: str = DEFAULT_WEB_PUSH_MARKER):
        self._marker = web_push_marker.lower()

    def classify(self, endpoint: str) -> ProtocolKind:
        try:
            parts = urlsplit((endpoint or "").strip())
            location = f"{parts.hostname or ''}{parts.path}".lower()
        except ValueError:
            logger.debug(f"Unparseable endpoint, defaulting to raw: {endpoint!r}")
            return ProtocolKind.VENDOR_RAW

        if self._marker and self._marker in location:
            return ProtocolKind.WEB_PUSH_VAPID
        return ProtocolKind.VENDOR_RAW
