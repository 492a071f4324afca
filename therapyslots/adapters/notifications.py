"""
Notification sinks that do not need a backend.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    recipient_id: str
    title: str
    message: str
    kind: str = "info"
    link: Optional[str] = None


class RecordingNotifier:
    """Keeps every notification in memory; handy for tests and mock mode."""

    def __init__(self):
        self.sent: List[Notification] = []

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        *,
        kind: str = "info",
        link: Optional[str] = None,
    ) -> None:
        self.sent.append(
            Notification(recipient_id=recipient_id, title=title, message=message, kind=kind, link=link)
        )

    def for_recipient(self, recipient_id: str) -> List[Notification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]


class LoggingNotifier:
    """Writes notifications to the log instead of delivering them."""

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        *,
        kind: str = "info",
        link: Optional[str] = None,
    ) -> None:
        logger.info("[%s] to %s: %s - %s", kind, recipient_id, title, message)
