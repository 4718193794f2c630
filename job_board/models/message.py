"""Message table: local append-only message log."""

from sqlalchemy import BigInteger, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from job_board.messages.models import Message

from .base import Base


class MessageRow(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair_time", "sender_id", "receiver_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sender_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    receiver_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    remote_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_record(self) -> Message:
        return Message(
            id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            text=self.text,
            timestamp=self.timestamp,
            remote_id=self.remote_id,
        )

    @classmethod
    def from_record(cls, message: Message) -> "MessageRow":
        return cls(
            id=message.id or None,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            text=message.text,
            timestamp=message.timestamp,
            remote_id=message.remote_id,
        )
