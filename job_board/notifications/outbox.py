"""Outbox documents that trigger the external push notifier.

A separate notifier watches the ``pending_notifications`` collection and fans
each new document out to the receiver's devices, then marks it ``sent``. This
side only creates the document; it never waits for delivery.
"""

import logging

from job_board.messages.models import Message
from job_board.storage.remote import DocumentStore
from job_board.utils.clock import now_millis

logger = logging.getLogger("job_board.notifications")

COLLECTION = "pending_notifications"


def build_notification(message: Message, sender_name: str) -> dict:
    return {
        "receiverId": str(message.receiver_id),
        "senderId": str(message.sender_id),
        "senderName": sender_name,
        "messageText": message.text,
        "sent": False,
        "createdAt": now_millis(),
    }


class NotificationOutbox:
    def __init__(self, remote: DocumentStore):
        self.remote = remote

    def enqueue(self, message: Message, sender_name: str) -> str:
        """Create the outbox document and return its id. Raises on remote failure."""
        doc_id = self.remote.add(COLLECTION, build_notification(message, sender_name))
        logger.debug("Queued notification %s for user %d", doc_id, message.receiver_id)
        return doc_id
