"""
Planning Poker

A real-time server for collaborative Planning Poker estimation sessions.
"""

__version__ = "1.0.0"

from .config import Config
from .container import Container
from .notifications import NullNotificationSink, SocketIONotificationSink
from .services import EstimationService, RoomService
from .stats import compute_statistics
from .store import InMemoryStore

__all__ = [
    "Config",
    "Container",
    "EstimationService",
    "InMemoryStore",
    "NullNotificationSink",
    "RoomService",
    "SocketIONotificationSink",
    "compute_statistics",
]
