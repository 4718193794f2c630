"""ORM models for the local store."""

from .base import Base, make_engine, make_session_factory
from .job import JobRow
from .message import MessageRow
from .sync_state import SyncState
from .user import UserRow

__all__ = [
    "Base",
    "make_engine",
    "make_session_factory",
    "JobRow",
    "MessageRow",
    "UserRow",
    "SyncState",
]
