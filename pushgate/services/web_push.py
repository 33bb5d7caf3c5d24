"""Protocol-specific request framing for WNS raw channels and Web Push."""

import logging
from typing import Dict, Optional

import httpx

from pushgate.core.exceptions import TransportFailure
from pushgate.core.logging import redact
from pushgate.models import Urgency
from pushgate.services.encryption import EncryptedPayload

logger = logging.getLogger(__name__)


class PushSender:
    """Sends one request per call. Failures are never retried here."""

    def __init__(self, http_client: httpx.AsyncClient, timeout: float = 15.0):
        self._client = http_client
        self._timeout = timeout

    async def send_vendor_raw(self, endpoint: str, access_token: str, payload: bytes) -> httpx.Response:
        """Deliver an opaque payload to a WNS raw channel."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "X-WNS-Type": "wns/raw",
            "X-WNS-RequestForStatus": "true",
            "Content-Type": "application/octet-stream",
        }
        return await self._post(endpoint, headers, payload)

    async def send_vendor_toast(self, endpoint: str, access_token: str, toast_xml: str) -> httpx.Response:
        """Deliver a toast document to a WNS channel."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "X-WNS-Type": "wns/toast",
            "X-WNS-RequestForStatus": "true",
            "Content-Type": "text/xml",
        }
        return await self._post(endpoint, headers, toast_xml.encode("utf-8"))

    async def send_web_push_vapid(
        self,
        endpoint: str,
        jwt: str,
        vapid_public_key_b64url: str,
        ttl: int,
        encrypted: Optional[EncryptedPayload] = None,
        urgency: Optional[Urgency] = None,
    ) -> httpx.Response:
        """Deliver a VAPID-authenticated Web Push message.

        Without an encrypted payload the body is empty, which push services
        accept as a wake-up message.
        """
        headers = {
            "Authorization": f"vapid t={jwt}, k={vapid_public_key_b64url}",
            "TTL": str(ttl),
        }
        if urgency is not None:
            headers["Urgency"] = urgency.value

        body = b""
        if encrypted is not None and len(encrypted) > 0:
            headers["Content-Encoding"] = "aes128gcm"
            headers["Crypto-Key"] = f"dh={encrypted.ephemeral_public_key}; p256ecdsa={vapid_public_key_b64url}"
            headers["Encryption"] = f"salt={encrypted.salt}"
            headers["Content-Type"] = "application/octet-stream"
            body = encrypted.ciphertext

        return await self._post(endpoint, headers, body)

    async def _post(self, endpoint: str, headers: Dict[str, str], body: bytes) -> httpx.Response:
        logger.info(f"Sending push to {redact(endpoint, 60)} ({len(body)} bytes)")
        try:
            response = await self._client.post(endpoint, content=body, headers=headers, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            logger.warning(f"Push request to {redact(endpoint, 60)} timed out")
            raise TransportFailure(f"Push request timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Push request to {redact(endpoint, 60)} failed: {exc}")
            raise TransportFailure(f"Push request failed: {exc}") from exc
        except httpx.InvalidURL as exc:
            logger.warning(f"Push endpoint {redact(endpoint, 60)} is not a valid URL: {exc}")
            raise TransportFailure(f"Invalid push endpoint: {exc}") from exc

        logger.info(f"Push response {response.status_code} from {redact(endpoint, 60)}")
        return response
