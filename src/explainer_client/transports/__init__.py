"""
Job progress transports: websocket push with polling as the fallback.
"""

from .base import Sink
from .poll import PollTransport
from .push import AUTH_REJECTED_STATUSES, PushState, PushTransport

__all__ = [
    "Sink",
    "PollTransport",
    "PushState",
    "PushTransport",
    "AUTH_REJECTED_STATUSES",
]
