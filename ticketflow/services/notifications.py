"""
ticketflow Notification Sink

The engine never touches user records to deliver messages; it is handed a
sink exposing notify(username, message). MailboxSink is the in-memory
append-only mailbox the command layer reads back.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, Iterable, List

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Deliver one message to one user."""

    @abstractmethod
    def notify(self, username: str, message: str) -> None:
        ...

    def notify_many(self, usernames: Iterable[str], message: str) -> int:
        sent = 0
        for username in usernames:
            self.notify(username, message)
            sent += 1
        return sent


class MailboxSink(NotificationSink):
    """
    Per-user mailbox.

    Messages are only appended by notify(); drain() hands them to the
    reader and empties the box, the way "view notifications" consumes them.
    """

    def __init__(self) -> None:
        self._mailboxes: Dict[str, List[str]] = defaultdict(list)

    def notify(self, username: str, message: str) -> None:
        logger.debug("Notify %s: %s", username, message)
        self._mailboxes[username].append(message)

    def inbox(self, username: str) -> List[str]:
        return list(self._mailboxes.get(username, []))

    def drain(self, username: str) -> List[str]:
        return self._mailboxes.pop(username, [])
