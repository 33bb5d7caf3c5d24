"""
Push dispatch service.

Owns the device registry and the token issuer, and routes each send to the
protocol its endpoint requires. Transport and authority failures come back as
``PushResult`` values so fan-out callers keep going after one failure; only
``NotFound`` for a single-device send is raised.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Union

import httpx

from pushgate.core.async_utils import gather_bounded, run_with_deadline
from pushgate.core.exceptions import (
    AuthFailure,
    ErrorKind,
    InvalidKeyEncoding,
    InvalidSubscription,
    NotFound,
    PushError,
)
from pushgate.core.logging import redact
from pushgate.core.security import audience_from_endpoint, b64_decode, b64url_encode
from pushgate.models import DeviceSubscription, DeviceSummary, ProtocolKind, PushMessage, PushResult
from pushgate.services.dispatch import DEFAULT_WEB_PUSH_MARKER, DispatchRouter
from pushgate.services.encryption import EncryptedPayload, PayloadEncryptor
from pushgate.services.keys import derive_public_from_private
from pushgate.services.registry import DeviceRegistry, validate_endpoint
from pushgate.services.results import ResultClassifier
from pushgate.services.token_issuer import OAuthCredentials, TokenIssuer
from pushgate.services.web_push import PushSender

logger = logging.getLogger(__name__)

ResultListener = Callable[[PushResult], Union[None, Awaitable[None]]]


def _decode_private_key(private_key_b64: str) -> bytes:
    try:
        return b64_decode(private_key_b64)
    except ValueError as exc:
        raise InvalidKeyEncoding(f"VAPID private key is not valid base64: {exc}") from exc


class PushDispatchService:
    """Delivers messages to registered devices over WNS raw or Web Push."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        oauth: Optional[OAuthCredentials] = None,
        vapid_subject: str = "mailto:admin@example.com",
        web_push_marker: str = DEFAULT_WEB_PUSH_MARKER,
        timeout: float = 15.0,
        token_safety_margin: timedelta = timedelta(minutes=5),
        max_concurrent: int = 5,
        encryptor: Optional[PayloadEncryptor] = None,
        on_result: Optional[ResultListener] = None,
        token_issuer: Optional[TokenIssuer] = None,
    ):
        self.registry = DeviceRegistry()
        self.router = DispatchRouter(web_push_marker)
        self.tokens = token_issuer or TokenIssuer(
            http_client, timeout=timeout, safety_margin=token_safety_margin
        )
        self.sender = PushSender(http_client, timeout=timeout)
        self.results = ResultClassifier()
        self._oauth = oauth
        self._vapid_subject = vapid_subject
        self._max_concurrent = max_concurrent
        self._encryptor = encryptor
        self._on_result = on_result

    # Registration

    async def register_device(
        self,
        device_id: str,
        channel_uri: str,
        user_id: Optional[str] = None,
    ) -> DeviceSubscription:
        """Register a raw channel; credentials are obtained per send."""
        validate_endpoint(channel_uri)
        record = DeviceSubscription(
            device_id=device_id,
            endpoint=channel_uri,
            protocol_kind=self.router.classify(channel_uri),
            user_id=user_id,
        )
        await self.registry.register(record)
        return record

    async def subscribe_device(
        self,
        device_id: str,
        channel_uri: str,
        private_key_b64: str,
        p256dh: Optional[str] = None,
        auth: Optional[str] = None,
    ) -> DeviceSubscription:
        """Register a Web Push channel together with its VAPID private key.

        The key is checked up front so a bad key fails the subscription rather
        than every later send.
        """
        validate_endpoint(channel_uri)
        if bool(p256dh) != bool(auth):
            raise InvalidSubscription("p256dh and auth must be supplied together")
        public_key = derive_public_from_private(_decode_private_key(private_key_b64))

        record = DeviceSubscription(
            device_id=device_id,
            endpoint=channel_uri,
            protocol_kind=self.router.classify(channel_uri),
            private_key_b64=private_key_b64,
            p256dh=p256dh,
            auth=auth,
        )
        await self.registry.register(record)
        logger.info(f"VAPID key stored for {device_id} (public={b64url_encode(public_key)[:20]}...)")
        return record

    async def list_devices(self) -> List[DeviceSummary]:
        return await self.registry.list()

    async def remove_device(self, device_id: str) -> bool:
        return await self.registry.remove(device_id)

    async def status(self) -> Dict[str, int]:
        counts = await self.registry.count()
        return {kind.value: count for kind, count in counts.items()}

    # Sending

    async def send(
        self,
        device_id: str,
        message: PushMessage,
        *,
        deadline: Optional[float] = None,
    ) -> PushResult:
        """Send ``message`` to one device.

        Raises ``NotFound`` for an unknown device; every other failure is
        reported through the returned result.
        """
        subscription = await self.registry.lookup(device_id)
        return await self._deliver(subscription, message, deadline)

    async def send_bulk(
        self,
        message: PushMessage,
        device_ids: Optional[List[str]] = None,
        *,
        deadline: Optional[float] = None,
    ) -> List[PushResult]:
        """Fan out to ``device_ids`` (all devices when omitted)."""
        if device_ids is None:
            device_ids = await self.registry.device_ids()

        async def send_one(device_id: str) -> PushResult:
            try:
                subscription = await self.registry.lookup(device_id)
            except NotFound as exc:
                result = self.results.from_error(exc, device_id=device_id)
                await self._notify(result)
                return result
            return await self._deliver(subscription, message, deadline)

        results = await gather_bounded(device_ids, send_one, self._max_concurrent)
        delivered = sum(1 for result in results if result.success)
        logger.info(f"Bulk push: sent {delivered}/{len(results)}")
        return results

    async def validate_subscription(self, device_id: str) -> PushResult:
        """Probe a Web Push subscription with an empty, zero-TTL message."""
        subscription = await self.registry.lookup(device_id)
        kind = self.router.classify(subscription.endpoint)
        context = dict(endpoint=subscription.endpoint, device_id=device_id, protocol_kind=kind)
        if kind is not ProtocolKind.WEB_PUSH_VAPID:
            return self.results.from_error(
                InvalidSubscription("Only Web Push subscriptions can be validated"), **context
            )
        try:
            response = await self._send_web_push(subscription, PushMessage(body="", ttl=0), encrypt=False)
        except PushError as exc:
            return self.results.from_error(exc, **context)
        return self.results.from_response(response, **context)

    async def _deliver(
        self,
        subscription: DeviceSubscription,
        message: PushMessage,
        deadline: Optional[float],
    ) -> PushResult:
        kind = self.router.classify(subscription.endpoint)
        context = dict(endpoint=subscription.endpoint, device_id=subscription.device_id, protocol_kind=kind)
        logger.info(
            f"Sending {kind.value} notification to {subscription.device_id} "
            f"({redact(subscription.endpoint, 60)})"
        )

        try:
            result = await run_with_deadline(self._dispatch(subscription, message, kind), deadline)
        except asyncio.TimeoutError as exc:
            logger.warning(f"Push to {subscription.device_id} cancelled after {deadline}s")
            result = self.results.from_error(exc, **context)

        await self._notify(result)
        return result

    async def _dispatch(
        self,
        subscription: DeviceSubscription,
        message: PushMessage,
        kind: ProtocolKind,
    ) -> PushResult:
        context = dict(endpoint=subscription.endpoint, device_id=subscription.device_id, protocol_kind=kind)
        try:
            if kind is ProtocolKind.WEB_PUSH_VAPID:
                response = await self._send_web_push(subscription, message)
            else:
                response = await self._send_vendor(subscription, message)
        except PushError as exc:
            logger.warning(f"Push to {subscription.device_id} failed before delivery: {exc.kind.value} - {exc.message}")
            return self.results.from_error(exc, **context)

        result = self.results.from_response(response, **context)
        if kind is ProtocolKind.VENDOR_RAW and result.error_kind is ErrorKind.AUTH_FAILURE and self._oauth:
            await self.tokens.invalidate(self._oauth.token_endpoint, self._oauth.client_id, self._oauth.scope)
        return result

    async def _send_vendor(self, subscription: DeviceSubscription, message: PushMessage) -> httpx.Response:
        if self._oauth is None:
            raise AuthFailure(0, message="WNS credentials are not configured")
        token = await self.tokens.fetch_oauth_token(
            self._oauth.token_endpoint,
            self._oauth.client_id,
            self._oauth.client_secret,
            self._oauth.scope,
        )
        if message.toast:
            return await self.sender.send_vendor_toast(subscription.endpoint, token.value, message.to_toast_xml())
        payload = message.to_payload(ProtocolKind.VENDOR_RAW).encode("utf-8")
        return await self.sender.send_vendor_raw(subscription.endpoint, token.value, payload)

    async def _send_web_push(
        self,
        subscription: DeviceSubscription,
        message: PushMessage,
        encrypt: bool = True,
    ) -> httpx.Response:
        if not subscription.private_key_b64:
            raise InvalidSubscription(f"Device {subscription.device_id} has no VAPID private key")

        private_key = _decode_private_key(subscription.private_key_b64)
        public_key = derive_public_from_private(private_key)
        audience = audience_from_endpoint(subscription.endpoint)
        jwt = self.tokens.sign_vapid_jwt(audience, self._vapid_subject, private_key)

        encrypted: Optional[EncryptedPayload] = None
        if encrypt and self._encryptor and subscription.p256dh and subscription.auth:
            encrypted = self._encryptor.encrypt(
                message.to_payload(ProtocolKind.WEB_PUSH_VAPID),
                subscription.p256dh,
                subscription.auth,
                endpoint=subscription.endpoint,
            )

        return await self.sender.send_web_push_vapid(
            subscription.endpoint,
            jwt,
            b64url_encode(public_key),
            message.ttl,
            encrypted=encrypted,
            urgency=message.urgency,
        )

    async def _notify(self, result: PushResult) -> None:
        if self._on_result is None:
            return
        try:
            outcome = self._on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Result listener failed for device {result.device_id}: {e}", exc_info=True)
