"""Local message queries."""

from typing import Optional

from sqlalchemy import and_, delete, or_, select

from job_board.messages.models import Message
from job_board.models import MessageRow

from .database import LocalDatabase

TABLE = "messages"


class MessageStore:
    table = TABLE

    def __init__(self, db: LocalDatabase):
        self.db = db

    def get(self, message_id: int) -> Optional[Message]:
        with self.db.session() as s:
            row = s.get(MessageRow, message_id)
            return row.to_record() if row else None

    def between(self, user_id: int, other_user_id: int) -> list[Message]:
        """Both directions of a conversation, oldest first."""
        stmt = (
            select(MessageRow)
            .where(or_(
                and_(MessageRow.sender_id == user_id, MessageRow.receiver_id == other_user_id),
                and_(MessageRow.sender_id == other_user_id, MessageRow.receiver_id == user_id),
            ))
            .order_by(MessageRow.timestamp.asc(), MessageRow.id)
        )
        return self._fetch(stmt)

    def for_user(self, user_id: int) -> list[Message]:
        """Every message sent or received by ``user_id``, newest first."""
        stmt = (
            select(MessageRow)
            .where(or_(MessageRow.sender_id == user_id, MessageRow.receiver_id == user_id))
            .order_by(MessageRow.timestamp.desc(), MessageRow.id)
        )
        return self._fetch(stmt)

    def upsert(self, message: Message) -> int:
        with self.db.session(changed=TABLE) as s:
            row = s.merge(MessageRow.from_record(message))
            s.flush()
            return row.id

    def delete(self, message_id: int) -> bool:
        """Only used by duplicate cleanup; messages are otherwise never deleted."""
        with self.db.session(changed=TABLE) as s:
            result = s.execute(
                delete(MessageRow).where(MessageRow.id == message_id).execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def _fetch(self, stmt) -> list[Message]:
        with self.db.session() as s:
            return [row.to_record() for row in s.scalars(stmt)]
