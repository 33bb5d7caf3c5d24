"""Credential issuance for both delivery protocols.

VAPID tokens are signed locally and never cached. OAuth2 access tokens are
fetched from the authority with the client-credentials grant and cached per
``(token_endpoint, client_id, scope)`` until shortly before they expire.
Concurrent callers for the same key share one in-flight request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Callable, Dict, Optional, Tuple

import httpx
from cryptography.hazmat.primitives.asymmetric import ec

from pushgate.core.cache import TokenCache
from pushgate.core.exceptions import AuthFailure, MalformedTokenResponse, TransportFailure
from pushgate.core.logging import redact
from pushgate.core.security import sign_vapid_jwt

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600
TOKEN_ENDPOINT_TEMPLATE = "https://{authority}/{tenant}/oauth2/v2.0/token"

CacheKey = Tuple[str, str, str]


def token_endpoint_for(authority: str, tenant_id: str) -> str:
    return TOKEN_ENDPOINT_TEMPLATE.format(authority=authority, tenant=tenant_id)


@dataclass(frozen=True)
class OAuthCredentials:
    """Client credentials for the vendor push authority."""

    tenant_id: str
    client_id: str
    client_secret: str
    scope: str = "https://wns.windows.com/.default"
    authority: str = "login.microsoftonline.com"

    @property
    def token_endpoint(self) -> str:
        return token_endpoint_for(self.authority, self.tenant_id)

    def __repr__(self) -> str:
        return f"OAuthCredentials(tenant_id={self.tenant_id!r}, client_id={self.client_id!r}, scope={self.scope!r})"


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: datetime

    def is_valid(self, now: datetime, safety_margin: timedelta = timedelta(0)) -> bool:
        return now < self.expires_at - safety_margin

    def __repr__(self) -> str:
        return f"AccessToken(value={redact(self.value)!r}, expires_at={self.expires_at.isoformat()})"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issues bearer credentials for a delivery target."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timeout: float = 15.0,
        safety_margin: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._client = http_client
        self._timeout = timeout
        self._clock = clock
        self._cache = TokenCache(safety_margin=safety_margin)
        self._inflight: Dict[CacheKey, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    def sign_vapid_jwt(
        self,
        audience: str,
        subject: str,
        private_key: bytes | ec.EllipticCurvePrivateKey,
    ) -> str:
        """Sign a fresh VAPID JWT. Tokens are never reused across sends."""
        token = sign_vapid_jwt(audience, subject, private_key)
        logger.debug(f"Signed VAPID JWT for audience {audience}")
        return token

    async def fetch_oauth_token(
        self,
        token_endpoint: str,
        client_id: str,
        client_secret: str,
        scope: str,
    ) -> AccessToken:
        """Return a cached access token, or mint one with the client-credentials grant."""
        key: CacheKey = (token_endpoint, client_id, scope)

        async with self._lock:
            cached = self._cache.get(key, self._clock())
            if cached is not None:
                return cached

            task = self._inflight.get(key)
            if task is None:
                logger.info(f"Requesting OAuth token from {token_endpoint} for client {client_id}")
                task = asyncio.create_task(self._refresh(key, client_secret))
                task.add_done_callback(partial(self._forget, key))
                self._inflight[key] = task
            else:
                logger.debug(f"Joining in-flight OAuth token request for client {client_id}")

        # One caller giving up must not cancel the request for the others
        return await asyncio.shield(task)

    async def invalidate(self, token_endpoint: str, client_id: str, scope: str) -> None:
        """Drop a cached token so the next send mints a new one."""
        async with self._lock:
            self._cache.delete((token_endpoint, client_id, scope))
        logger.info(f"Invalidated cached OAuth token for client {client_id}")

    def _forget(self, key: CacheKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved when every waiter gave up
            task.exception()

    async def _refresh(self, key: CacheKey, client_secret: str) -> AccessToken:
        token = await self._request_token(key, client_secret)
        async with self._lock:
            self._cache.set(key, token)
        return token

    async def _request_token(self, key: CacheKey, client_secret: str) -> AccessToken:
        token_endpoint, client_id, scope = key
        form = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": scope,
        }
        try:
            response = await self._client.post(token_endpoint, data=form, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            logger.warning(f"OAuth token request to {token_endpoint} timed out")
            raise TransportFailure(f"Token request timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning(f"OAuth token request to {token_endpoint} failed: {exc}")
            raise TransportFailure(f"Token request failed: {exc}") from exc

        if not response.is_success:
            logger.warning(f"OAuth token request failed: {response.status_code} - {response.text}")
            raise AuthFailure(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedTokenResponse("Token response is not valid JSON") from exc

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise MalformedTokenResponse("Token response does not contain access_token")

        try:
            expires_in = int(body.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError) as exc:
            raise MalformedTokenResponse(f"Invalid expires_in: {body.get('expires_in')!r}") from exc

        token = AccessToken(
            value=access_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
        )
        logger.info(f"OAuth token obtained for client {client_id}, expires in {expires_in}s")
        return token
