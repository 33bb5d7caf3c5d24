"""Push dispatch server for WNS raw channels and VAPID Web Push."""

__version__ = "0.1.0"
