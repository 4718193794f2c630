"""Direct message record."""

from dataclasses import dataclass, field
from typing import Optional

from job_board.sync.identity import map_offline_key
from job_board.utils.clock import now_millis


@dataclass
class Message:
    """One message in the append-only log between two users."""

    sender_id: int
    receiver_id: int
    text: str
    timestamp: int = field(default_factory=now_millis)
    id: int = 0
    remote_id: Optional[str] = field(default=None, compare=False, repr=False)

    @property
    def content_key(self) -> tuple[str, int, int]:
        """Business identity minus the timestamp, which is matched within a window."""
        return (self.text, self.sender_id, self.receiver_id)

    @property
    def conversation(self) -> frozenset:
        return frozenset((self.sender_id, self.receiver_id))

    def offline_key(self) -> int:
        return map_offline_key(self.sender_id, self.receiver_id, self.text, self.timestamp)

    def counterpart(self, user_id: int) -> int:
        return self.receiver_id if self.sender_id == user_id else self.sender_id

    def matches(self, other: "Message", window_ms: int) -> bool:
        return (
            self.content_key == other.content_key
            and abs(self.timestamp - other.timestamp) < window_ms
        )

    def to_document(self) -> dict:
        return {
            "senderId": str(self.sender_id),
            "receiverId": str(self.receiver_id),
            "text": self.text,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(cls, data: dict, id: int = 0, remote_id: Optional[str] = None) -> "Message":
        return cls(
            id=id,
            remote_id=remote_id,
            sender_id=_int_or_zero(data.get("senderId")),
            receiver_id=_int_or_zero(data.get("receiverId")),
            text=data.get("text") or "",
            timestamp=_int_or_zero(data.get("timestamp")) or now_millis(),
        )


def _int_or_zero(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
