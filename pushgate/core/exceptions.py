"""Typed failures raised by the push dispatch components."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    KEY_GENERATION = "key_generation_error"
    INVALID_KEY_ENCODING = "invalid_key_encoding"
    KEY_DERIVATION = "key_derivation_error"
    SIGNING = "signing_error"
    AUTH_FAILURE = "auth_failure"
    MALFORMED_TOKEN_RESPONSE = "malformed_token_response"
    INVALID_SUBSCRIPTION = "invalid_subscription"
    NOT_FOUND = "not_found"
    TRANSPORT_FAILURE = "transport_failure"
    RATE_LIMITED = "rate_limited"
    ENCRYPTION_FAILURE = "encryption_failure"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class PushError(Exception):
    """Base class for every failure carrying a machine-readable kind."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class KeyGenerationError(PushError):
    kind = ErrorKind.KEY_GENERATION


class InvalidKeyEncoding(PushError):
    kind = ErrorKind.INVALID_KEY_ENCODING


class KeyDerivationError(PushError):
    kind = ErrorKind.KEY_DERIVATION


class SigningError(PushError):
    kind = ErrorKind.SIGNING


class AuthFailure(PushError):
    kind = ErrorKind.AUTH_FAILURE

    def __init__(self, status_code: int, body: str = "", message: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Token request failed with status {status_code}: {body or '(empty)'}")


class MalformedTokenResponse(PushError):
    kind = ErrorKind.MALFORMED_TOKEN_RESPONSE


class InvalidSubscription(PushError):
    kind = ErrorKind.INVALID_SUBSCRIPTION


class NotFound(PushError):
    kind = ErrorKind.NOT_FOUND


class TransportFailure(PushError):
    kind = ErrorKind.TRANSPORT_FAILURE


class RateLimited(PushError):
    kind = ErrorKind.RATE_LIMITED


class EncryptionFailure(PushError):
    kind = ErrorKind.ENCRYPTION_FAILURE
