from .config import settings
from .exceptions import ErrorKind, PushError
from .security import (
    audience_from_endpoint,
    b64_decode,
    b64url_encode,
    sign_vapid_jwt,
)

__all__ = [
    "settings",
    "ErrorKind",
    "PushError",
    "audience_from_endpoint",
    "b64_decode",
    "b64url_encode",
    "sign_vapid_jwt",
]
