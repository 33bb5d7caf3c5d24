"""Web Push payload encryption (RFC 8291, aes128gcm content coding)."""

from __future__ import annotations

import binascii
import logging
import struct
from dataclasses import dataclass
from typing import Protocol

from pywebpush import WebPushException, WebPusher

from pushgate.core.exceptions import EncryptionFailure
from pushgate.core.security import b64url_encode

logger = logging.getLogger(__name__)

# salt(16) || record size(4) || key id length(1) || key id
_SALT_LENGTH = 16
_HEADER_PREFIX = _SALT_LENGTH + 4 + 1


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: bytes
    salt: str  # base64url
    ephemeral_public_key: str  # base64url uncompressed point

    def __len__(self) -> int:
        return len(self.ciphertext)


class PayloadEncryptor(Protocol):
    def encrypt(self, message: str | bytes, p256dh: str, auth: str, *, endpoint: str) -> EncryptedPayload:
        ...


class WebPushPayloadEncryptor:
    """Encrypts payloads with the ``pywebpush`` aes128gcm encoder.

    A new ephemeral ECDH key and salt are used for every message; both are
    read back from the aes128gcm record header so the legacy ``Crypto-Key``
    and ``Encryption`` headers can be filled in.
    """

    def encrypt(self, message: str | bytes, p256dh: str, auth: str, *, endpoint: str) -> EncryptedPayload:
        if not message:
            raise EncryptionFailure("Nothing to encrypt")
        subscription_info = {"endpoint": endpoint, "keys": {"p256dh": p256dh, "auth": auth}}
        try:
            encoded = WebPusher(subscription_info).encode(message, content_encoding="aes128gcm")
        except (WebPushException, binascii.Error, ValueError, TypeError) as exc:
            logger.warning(f"Web Push payload encryption failed: {exc}")
            raise EncryptionFailure(f"Failed to encrypt Web Push message: {exc}") from exc

        body = bytes(encoded["body"])
        if len(body) < _HEADER_PREFIX:
            raise EncryptionFailure("Encrypted payload is missing its aes128gcm header")
        salt = body[:_SALT_LENGTH]
        (key_id_length,) = struct.unpack("!B", body[_SALT_LENGTH + 4:_HEADER_PREFIX])
        ephemeral_key = body[_HEADER_PREFIX:_HEADER_PREFIX + key_id_length]

        return EncryptedPayload(
            ciphertext=body,
            salt=b64url_encode(salt),
            ephemeral_public_key=b64url_encode(ephemeral_key),
        )
