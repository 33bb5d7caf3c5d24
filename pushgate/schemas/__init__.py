from .push import (
    BroadcastRequest,
    DeleteResponse,
    DeviceSummaryRead,
    ErrorResponse,
    PushResultRead,
    RegisterRequest,
    RegisterResponse,
    SendRequest,
    ServerStatus,
    SubscribeRequest,
    SubscribeResponse,
    VapidKeysRead,
)

__all__ = [
    "BroadcastRequest",
    "DeleteResponse",
    "DeviceSummaryRead",
    "ErrorResponse",
    "PushResultRead",
    "RegisterRequest",
    "RegisterResponse",
    "SendRequest",
    "ServerStatus",
    "SubscribeRequest",
    "SubscribeResponse",
    "VapidKeysRead",
]
