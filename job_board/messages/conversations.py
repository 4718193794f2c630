"""Conversation list and the single open-conversation subscription."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from job_board.users.models import User
from job_board.users.repository import UserRepository

from .models import Message
from .repository import MessageRepository

logger = logging.getLogger("job_board.messages.conversations")


@dataclass
class ConversationItem:
    other_user: User
    last_message: Message


def latest_per_counterpart(messages: list[Message], user_id: int) -> dict[int, Message]:
    latest: dict[int, Message] = {}
    for message in messages:
        other = message.counterpart(user_id)
        current = latest.get(other)
        if current is None or message.timestamp > current.timestamp:
            latest[other] = message
    return latest


async def list_conversations(
    messages: MessageRepository, users: UserRepository, user_id: int
) -> list[ConversationItem]:
    """One item per counterpart with its latest message, most recent first.

    Counterparts whose account cannot be found in either store are left out.
    """
    result = await messages.get_all_for_user(user_id)
    items = []
    for other_id, last in latest_per_counterpart(result.records, user_id).items():
        lookup = await users.get_by_id(other_id)
        if lookup.record is None:
            logger.debug("Skipping conversation with unknown user %d", other_id)
            continue
        items.append(ConversationItem(lookup.record, last))
    items.sort(key=lambda item: item.last_message.timestamp, reverse=True)
    return items


class ConversationFeed:
    """Follows at most one open conversation at a time.

    Opening a different conversation cancels the task that followed the
    previous one before starting a new one; reopening the same conversation
    while it is being followed does nothing.
    """

    def __init__(self, messages: MessageRepository, user_id: int):
        self.messages = messages
        self.user_id = user_id
        self.other_user_id: Optional[int] = None
        self.snapshot: list[Message] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def open(self, other_user_id: int, on_snapshot: Optional[Callable[[list[Message]], None]] = None):
        if self.other_user_id == other_user_id and self.active:
            return
        await self.close()
        self.other_user_id = other_user_id
        self._task = asyncio.create_task(self._follow(other_user_id, on_snapshot))

    async def _follow(self, other_user_id: int, on_snapshot):
        async for snapshot in self.messages.watch_conversation(self.user_id, other_user_id):
            self.snapshot = snapshot
            if on_snapshot is not None:
                on_snapshot(snapshot)

    async def close(self):
        task, self._task = self._task, None
        self.snapshot = []
        self.other_user_id = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
