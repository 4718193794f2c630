"""Table change notifications that back the observable listing reads.

Writes happen on worker threads (``asyncio.to_thread``) while subscribers wait
on their own event loops, so publishing hops onto each subscriber's loop with
``call_soon_threadsafe``.
"""

import asyncio
import logging
import threading

logger = logging.getLogger("job_board.storage.changes")


class ChangeSubscription:
    """Wakes up whenever one of the watched tables changes."""

    def __init__(self, feed: "ChangeFeed", tables: frozenset[str], loop: asyncio.AbstractEventLoop):
        self._feed = feed
        self.tables = tables
        self._loop = loop
        self._event = asyncio.Event()

    def _notify(self):
        self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self):
        """Block until at least one change arrived since the previous wait."""
        await self._event.wait()
        self._event.clear()

    def close(self):
        self._feed._remove(self)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[ChangeSubscription] = []

    def subscribe(self, *tables: str) -> ChangeSubscription:
        """Must be called from inside a running event loop."""
        sub = ChangeSubscription(self, frozenset(tables), asyncio.get_running_loop())
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def publish(self, table: str):
        with self._lock:
            targets = [s for s in self._subscriptions if table in s.tables]
        for sub in targets:
            try:
                sub._notify()
            except RuntimeError:
                # Subscriber's loop already closed without closing the subscription
                logger.debug("Dropping change notification for closed loop")
                sub.close()

    def _remove(self, sub: ChangeSubscription):
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)
