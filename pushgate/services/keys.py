"""VAPID key material: generation, import and public key derivation."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from py_vapid import Vapid02

from pushgate.core.exceptions import InvalidKeyEncoding, KeyDerivationError, KeyGenerationError
from pushgate.core.security import b64_decode, b64url_encode, load_private_key, uncompressed_point

logger = logging.getLogger(__name__)

UNCOMPRESSED_POINT_LENGTH = 65


@dataclass(frozen=True)
class VapidKeyPair:
    """P-256 key pair used to sign VAPID tokens.

    ``public_key`` is the 65-byte uncompressed point, ``private_key`` the
    PKCS8 DER encoding.
    """

    public_key: bytes
    private_key: bytes

    @property
    def public_key_b64url(self) -> str:
        """Application server key as sent in ``k=`` and ``p256ecdsa=``."""
        return b64url_encode(self.public_key)

    @property
    def private_key_b64(self) -> str:
        """Standard base64 of the PKCS8 DER, the format devices submit."""
        return base64.b64encode(self.private_key).decode("ascii")

    def __repr__(self) -> str:
        return f"VapidKeyPair(public_key={self.public_key_b64url!r})"


def generate_key_pair() -> VapidKeyPair:
    """Create a fresh P-256 key pair."""
    try:
        vapid = Vapid02()
        vapid.generate_keys()
        private_key = vapid.private_key
        pair = VapidKeyPair(
            public_key=uncompressed_point(private_key.public_key()),
            private_key=private_key.private_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ),
        )
    except Exception as exc:
        logger.error(f"VAPID key generation failed: {exc}", exc_info=True)
        raise KeyGenerationError(f"Cryptographic provider could not generate a P-256 key: {exc}") from exc

    logger.info(f"Generated VAPID key pair (public={pair.public_key_b64url[:20]}...)")
    return pair


def _normalise_public_key(data: bytes) -> bytes:
    if len(data) == UNCOMPRESSED_POINT_LENGTH:
        if data[0] != 0x04:
            raise InvalidKeyEncoding("Public key is not an uncompressed EC point")
        try:
            ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), data)
        except ValueError as exc:
            raise InvalidKeyEncoding(f"Public key is not a point on P-256: {exc}") from exc
        return data

    try:
        key = serialization.load_der_public_key(data)
    except ValueError as exc:
        raise InvalidKeyEncoding(
            f"Public key must be a {UNCOMPRESSED_POINT_LENGTH}-byte point or SPKI DER, got {len(data)} bytes"
        ) from exc
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(key.curve, ec.SECP256R1):
        raise InvalidKeyEncoding("Public key is not a P-256 key")
    return uncompressed_point(key)


def import_from_base64(public_key_b64: str, private_key_b64: str) -> VapidKeyPair:
    """Decode previously generated key material."""
    try:
        public_raw = b64_decode(public_key_b64)
        private_raw = b64_decode(private_key_b64)
    except ValueError as exc:
        raise InvalidKeyEncoding(f"Malformed base64 key material: {exc}") from exc

    public_key = _normalise_public_key(public_raw)
    try:
        private_key = load_private_key(private_raw)
    except ValueError as exc:
        raise InvalidKeyEncoding(f"Private key is not PKCS8 DER ({len(private_raw)} bytes): {exc}") from exc

    if uncompressed_point(private_key.public_key()) != public_key:
        raise InvalidKeyEncoding("Public key does not belong to the private key")

    return VapidKeyPair(
        public_key=public_key,
        private_key=private_key.private_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ),
    )


def derive_public_from_private(private_key_bytes: bytes) -> bytes:
    """Return ``0x04 || X || Y`` for a PKCS8 (or raw scalar) P-256 private key."""
    try:
        private_key = load_private_key(private_key_bytes)
    except ValueError as exc:
        raise KeyDerivationError(f"Failed to extract public key from private key: {exc}") from exc
    return uncompressed_point(private_key.public_key())
