from .push import PushMessage, PushResult, Urgency
from .subscription import DeviceSubscription, DeviceSummary, ProtocolKind

__all__ = [
    "DeviceSubscription",
    "DeviceSummary",
    "ProtocolKind",
    "PushMessage",
    "PushResult",
    "Urgency",
]
