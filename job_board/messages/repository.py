"""Messages: serialized sends with duplicate suppression, conversation sync, inbox pulls.

Messages are append-only and carry no server-side identity other than the
document id, so two stored messages are considered the same when text, sender
and receiver match and their timestamps are within a tolerance window.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from job_board.notifications.outbox import NotificationOutbox
from job_board.storage.messages import MessageStore
from job_board.storage.remote import DocumentStore, Filter, Order, equals
from job_board.sync.connectivity import ConnectivityGate
from job_board.sync.dedup import DuplicateResolver
from job_board.sync.repository import DualStoreRepository
from job_board.sync.results import LookupResult, ReadResult, SyncStatus, WriteResult

from .models import Message

logger = logging.getLogger("job_board.messages")

COLLECTION = "messages"
SEND_DUPLICATE_WINDOW_MS = 3000
PULL_DUPLICATE_WINDOW_MS = 5000
OLDEST_FIRST = [Order("timestamp")]


class MessageRepository(DualStoreRepository[Message]):
    collection = COLLECTION
    record_type = Message

    def __init__(
        self,
        store: MessageStore,
        remote: Optional[DocumentStore],
        gate: ConnectivityGate,
        outbox: Optional[NotificationOutbox] = None,
        sender_name: Optional[Callable[[int], str]] = None,
        send_window_ms: int = SEND_DUPLICATE_WINDOW_MS,
        pull_window_ms: int = PULL_DUPLICATE_WINDOW_MS,
    ):
        self.send_window_ms = send_window_ms
        self.pull_window_ms = pull_window_ms
        super().__init__(store, remote, gate)
        self.outbox = outbox
        self.sender_name = sender_name
        # conversation -> (lock, number of sends holding or waiting for it)
        self._send_locks: dict[frozenset, tuple[asyncio.Lock, int]] = {}

    def make_resolver(self) -> DuplicateResolver[Message]:
        return DuplicateResolver(
            lambda m: m.content_key,
            timestamp=lambda m: m.timestamp,
            window_ms=self.pull_window_ms,
            delete_local=self.store.delete,
        )

    def local_matches(self, message: Message, window_ms: Optional[int] = None) -> list[Message]:
        window_ms = self.pull_window_ms if window_ms is None else window_ms
        return [
            m for m in self.store.between(message.sender_id, message.receiver_id)
            if m.matches(message, window_ms)
        ]

    def sort(self, messages: list[Message]) -> list[Message]:
        return sorted(messages, key=lambda m: (m.timestamp, m.id))

    # -- sending ---------------------------------------------------------------

    @asynccontextmanager
    async def _conversation_lock(self, conversation: frozenset):
        """Hold the conversation's send lock; the entry is dropped once no send needs it."""
        lock, users = self._send_locks.get(conversation, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._send_locks[conversation] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._send_locks[conversation]
            if users == 1:
                del self._send_locks[conversation]
            else:
                self._send_locks[conversation] = (lock, users - 1)

    async def send_message(self, message: Message) -> WriteResult:
        """Store a new message, suppressing a repeat of one sent moments ago.

        Sends within one conversation run one at a time, so two quick sends of
        the same text cannot both pass the duplicate check.
        """
        message.text = message.text.strip()
        if not message.text:
            raise ValueError("Message text must not be empty")

        async with self._conversation_lock(message.conversation):
            if message.id == 0:
                existing = await asyncio.to_thread(self._recent_duplicate, message)
                if existing is not None:
                    logger.info("Suppressed duplicate send, reusing message %d", existing.id)
                    return WriteResult(existing.id, SyncStatus.LOCAL, duplicate=True)
            # Only copies inside the send window are replaced
            result = await self.write(message, lambda m: self.local_matches(m, self.send_window_ms))

        if result.status is SyncStatus.REMOTE:
            await self._enqueue_notification(message)
        return result

    def _recent_duplicate(self, message: Message) -> Optional[Message]:
        for existing in self.store.between(message.sender_id, message.receiver_id):
            if existing.matches(message, self.send_window_ms):
                return existing
        return None

    async def _enqueue_notification(self, message: Message):
        if self.outbox is None:
            return
        try:
            name = await asyncio.to_thread(self._sender_name, message.sender_id)
            await asyncio.to_thread(self.outbox.enqueue, message, name)
        except Exception as e:
            logger.warning("Could not queue notification for message to %d: %s", message.receiver_id, e)

    def _sender_name(self, user_id: int) -> str:
        if self.sender_name is None:
            return ""
        return self.sender_name(user_id)

    # -- conversations ---------------------------------------------------------

    def _conversation_remote(self, user_id: int, other_user_id: int):
        def fetch() -> list[Message]:
            return (
                self._query_direction(user_id, other_user_id)
                + self._query_direction(other_user_id, user_id)
            )
        return fetch

    def _query_direction(self, sender_id: int, receiver_id: int) -> list[Message]:
        filters = [equals("senderId", str(sender_id)), equals("receiverId", str(receiver_id))]
        try:
            return self.query_records(filters=filters, order_by=OLDEST_FIRST)
        except Exception as e:
            # Ordered queries need a composite index the remote project may lack
            logger.debug("Ordered message query failed, retrying unordered: %s", e)
            return self.query_records(filters=filters)

    async def sync_conversation(self, user_id: int, other_user_id: int) -> ReadResult[Message]:
        """Both directions of a conversation, oldest first.

        A reachable remote store refreshes the local copy first; the listing
        itself comes from the local store so unsent offline messages stay in it.
        """
        return await self.read(
            self._conversation_remote(user_id, other_user_id),
            lambda: self.store.between(user_id, other_user_id),
            local_view=True,
        )

    def watch_conversation(self, user_id: int, other_user_id: int) -> AsyncIterator[list[Message]]:
        return self.watch(
            self._conversation_remote(user_id, other_user_id),
            lambda: self.store.between(user_id, other_user_id),
            local_view=True,
        )

    async def get_all_for_user(self, user_id: int) -> ReadResult[Message]:
        """Every message the user sent or received, newest first, from the local store."""
        try:
            messages = await asyncio.to_thread(self.store.for_user, user_id)
        except Exception as e:
            logger.error("Local message read for user %d failed: %s", user_id, e)
            return ReadResult([], SyncStatus.FAILED)
        return ReadResult(messages, SyncStatus.LOCAL)

    async def get_by_id(self, message_id: int) -> LookupResult[Message]:
        return await self.get(message_id)

    # -- background inbox pull -------------------------------------------------

    async def pull_received(self, user_id: int, since: int) -> Optional[list[Message]]:
        """Store messages received by ``user_id`` after ``since`` that are not yet local.

        Returns the newly stored messages oldest first, or None when the gate
        is closed. Pulled messages are only written locally; they already exist
        remotely. Remote errors propagate to the caller.
        """
        if not await self.is_online():
            return None
        received = await asyncio.to_thread(self._received_since, user_id, since)
        return await asyncio.to_thread(self._store_new, user_id, received)

    def _received_since(self, user_id: int, since: int) -> list[Message]:
        to_user = equals("receiverId", str(user_id))
        try:
            messages = self.query_records(filters=[to_user, Filter("timestamp", ">", since)])
        except Exception as e:
            logger.debug("Range query for new messages failed, fetching all: %s", e)
            messages = self.query_records(filters=[to_user])
        return [m for m in messages if m.timestamp > since]

    def _store_new(self, user_id: int, received: list[Message]) -> list[Message]:
        local = self.store.for_user(user_id)
        fresh = [
            m for m in received
            if m.receiver_id == user_id
            and m.sender_id != user_id
            and not any(m.matches(known, self.pull_window_ms) for known in local)
        ]
        fresh = self.sort(self.resolver.resolve(fresh))
        for message in fresh:
            self.store_local(message)
        return fresh
