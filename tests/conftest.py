"""Shared fixtures: a temporary local store, an in-memory remote store and a settable gate."""

import os
import tempfile

import pytest

from job_board.jobs.repository import JobRepository
from job_board.messages.repository import MessageRepository
from job_board.notifications.outbox import NotificationOutbox
from job_board.storage.database import LocalDatabase
from job_board.storage.jobs import JobStore
from job_board.storage.messages import MessageStore
from job_board.storage.remote import MemoryDocumentStore, RemoteStoreError
from job_board.storage.users import UserStore
from job_board.sync.connectivity import StaticGate
from job_board.users.repository import UserRepository


class FlakyDocumentStore(MemoryDocumentStore):
    """Memory store whose operations can be made to fail."""

    def __init__(self):
        super().__init__()
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def _check(self, op: str):
        self.calls.append(op)
        if op in self.failing or "*" in self.failing:
            raise RemoteStoreError(f"{op} unavailable")

    def add(self, collection, data):
        self._check("add")
        return super().add(collection, data)

    def get(self, collection, doc_id):
        self._check("get")
        return super().get(collection, doc_id)

    def query(self, collection, filters=None, order_by=None, limit=None):
        self._check("query")
        return super().query(collection, filters, order_by, limit)

    def set(self, collection, doc_id, data):
        self._check("set")
        return super().set(collection, doc_id, data)

    def update(self, collection, doc_id, fields):
        self._check("update")
        return super().update(collection, doc_id, fields)

    def delete(self, collection, doc_id):
        self._check("delete")
        return super().delete(collection, doc_id)


@pytest.fixture
def db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        database = LocalDatabase(f"sqlite:///{os.path.join(tmpdir, 'test.db')}")
        yield database
        database.close()


@pytest.fixture
def remote():
    return FlakyDocumentStore()


@pytest.fixture
def gate():
    return StaticGate(online=True)


@pytest.fixture
def jobs(db, remote, gate):
    return JobRepository(JobStore(db), remote, gate)


@pytest.fixture
def users(db, remote, gate):
    return UserRepository(UserStore(db), remote, gate)


@pytest.fixture
def messages(db, remote, gate):
    user_store = UserStore(db)

    def sender_name(user_id):
        user = user_store.get(user_id)
        return user.display_name if user else ""

    return MessageRepository(
        MessageStore(db),
        remote,
        gate,
        outbox=NotificationOutbox(remote),
        sender_name=sender_name,
    )
