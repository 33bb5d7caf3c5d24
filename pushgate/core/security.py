from __future__ import annotations

import base64
import binascii
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt
from jose.exceptions import JOSEError

from pushgate.core.exceptions import InvalidSubscription, SigningError

JWT_ALGORITHM = "ES256"
VAPID_TOKEN_TTL = timedelta(hours=12)


def b64url_encode(data: bytes) -> str:
    """RFC 4648 section 5 encoding without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64_decode(value: str) -> bytes:
    """Decode standard or URL-safe base64, with or without padding.

    Raises ``binascii.Error`` (a ``ValueError``) on malformed input.
    """
    cleaned = (value or "").strip().replace("-", "+").replace("_", "/")
    if not cleaned:
        raise binascii.Error("empty base64 value")
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned, validate=True)


def load_private_key(data: bytes) -> ec.EllipticCurvePrivateKey:
    """Load a P-256 private key from PKCS8 DER or a raw 32-byte scalar."""
    if len(data) == 32:
        key = ec.derive_private_key(int.from_bytes(data, "big"), ec.SECP256R1())
    else:
        try:
            key = serialization.load_der_private_key(data, password=None)
        except (TypeError, UnsupportedAlgorithm) as exc:
            raise ValueError(f"Unsupported private key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise ValueError("VAPID keys must be P-256 elliptic-curve keys")
    return key


def uncompressed_point(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def audience_from_endpoint(endpoint: str) -> str:
    """Origin of a push endpoint (scheme and host, no port or path)."""
    try:
        parts = urlsplit(endpoint or "")
        host = parts.hostname
    except ValueError as exc:
        raise InvalidSubscription(f"Malformed endpoint: {endpoint!r}") from exc
    if not parts.scheme or not host:
        raise InvalidSubscription(f"Endpoint is not an absolute URI: {endpoint!r}")
    if ":" in host:
        host = f"[{host}]"
    return f"{parts.scheme}://{host}"


def sign_vapid_jwt(
    audience: str,
    subject: str,
    private_key: bytes | ec.EllipticCurvePrivateKey,
    expires_delta: timedelta = VAPID_TOKEN_TTL,
) -> str:
    """Mint an ES256 VAPID token for one ``(audience, subject)`` pair."""
    try:
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            key = private_key
        else:
            key = load_private_key(private_key)
        pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")
    except ValueError as exc:
        raise SigningError(f"Could not load VAPID private key: {exc}") from exc

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "aud": audience,
        "exp": int((now + expires_delta).timestamp()),
        "sub": subject,
    }
    try:
        return jwt.encode(payload, pem, algorithm=JWT_ALGORITHM, headers={"typ": "JWT"})
    except JOSEError as exc:
        raise SigningError(f"Failed to sign VAPID JWT: {exc}") from exc
