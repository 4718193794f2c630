"""Background check for messages received while the app was not looking."""

import asyncio
import logging
from typing import Callable, Optional

from job_board.messages.models import Message
from job_board.messages.repository import MessageRepository
from job_board.storage.database import LocalDatabase
from job_board.users.repository import UserRepository
from job_board.utils.clock import now_millis

logger = logging.getLogger("job_board.worker")

LAST_CHECK_KEY = "last_message_check_time"
DEFAULT_LOOKBACK_MS = 60 * 60 * 1000
MAX_ATTEMPTS = 3

# (sender display name, message)
NewMessageCallback = Callable[[str, Message], None]


class MessageCheckWorker:
    def __init__(
        self,
        db: LocalDatabase,
        messages: MessageRepository,
        users: UserRepository,
        on_message: Optional[NewMessageCallback] = None,
        lookback_ms: int = DEFAULT_LOOKBACK_MS,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = 1.0,
    ):
        self.db = db
        self.messages = messages
        self.users = users
        self.on_message = on_message
        self.lookback_ms = lookback_ms
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    def last_check_time(self) -> int:
        value = self.db.get_meta(LAST_CHECK_KEY)
        if value is None:
            # First run: look back a little so recent messages are not missed
            return now_millis() - self.lookback_ms
        return int(value)

    async def check_once(self, user_id: int) -> Optional[list[Message]]:
        """One pull; returns the new messages, or None when the remote store is unreachable."""
        since = await asyncio.to_thread(self.last_check_time)
        started = now_millis()
        fresh = await self.messages.pull_received(user_id, since)
        if fresh is None:
            logger.info("Remote store unreachable; message check skipped")
            return None

        for message in fresh:
            sender = await self.users.get_by_id(message.sender_id)
            if sender.record is None:
                continue
            if self.on_message is not None:
                self.on_message(sender.record.display_name, message)

        await asyncio.to_thread(self.db.set_meta, LAST_CHECK_KEY, str(started))
        logger.info("Message check for user %d found %d new message(s)", user_id, len(fresh))
        return fresh

    async def run(self, user_id: int) -> Optional[list[Message]]:
        """check_once with up to ``max_attempts`` tries; the last error propagates."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.check_once(user_id)
            except Exception as e:
                if attempt == self.max_attempts:
                    logger.error("Message check failed after %d attempts: %s", attempt, e)
                    raise
                logger.warning("Message check attempt %d failed, retrying: %s", attempt, e)
                await asyncio.sleep(self.retry_delay * attempt)
        return None
