"""
Adapters layer - Backend storage and notification integrations.
"""

from .memory_store import InMemorySchedulingStore
from .notifications import LoggingNotifier, Notification, RecordingNotifier
from .rest_store import RestSchedulingStore

__all__ = [
    "InMemorySchedulingStore",
    "LoggingNotifier",
    "Notification",
    "RecordingNotifier",
    "RestSchedulingStore",
]
