"""Tests for the background message check."""

from unittest.mock import AsyncMock

import pytest

from job_board.messages.models import Message
from job_board.storage.remote import RemoteStoreError
from job_board.storage.users import UserStore
from job_board.users.models import User
from job_board.utils.clock import now_millis
from job_board.worker import LAST_CHECK_KEY, MessageCheckWorker


@pytest.fixture
def received():
    return []


@pytest.fixture
def worker(db, messages, users, received):
    return MessageCheckWorker(
        db,
        messages,
        users,
        on_message=lambda name, message: received.append((name, message.text)),
        retry_delay=0,
    )


@pytest.fixture
def sender(db):
    UserStore(db).upsert(User("Boris", "Petrov", "boris@example.com", "89001234567", "boris", "secret1", id=2))


class TestCheckOnce:
    @pytest.mark.asyncio
    async def test_new_messages_reported_and_time_saved(self, worker, remote, db, received, sender):
        db.set_meta(LAST_CHECK_KEY, "1000")
        remote.add("messages", Message(2, 1, "hello", timestamp=5000).to_document())
        remote.add("messages", Message(2, 1, "stale", timestamp=500).to_document())

        before = now_millis()
        fresh = await worker.check_once(1)
        assert [m.text for m in fresh] == ["hello"]
        assert received == [("Boris Petrov", "hello")]
        assert int(db.get_meta(LAST_CHECK_KEY)) >= before

    @pytest.mark.asyncio
    async def test_first_run_looks_back_one_hour(self, worker, remote, sender):
        now = now_millis()
        remote.add("messages", Message(2, 1, "recent", timestamp=now - 10 * 60 * 1000).to_document())
        remote.add("messages", Message(2, 1, "ancient", timestamp=now - 3 * 60 * 60 * 1000).to_document())
        fresh = await worker.check_once(1)
        assert [m.text for m in fresh] == ["recent"]

    @pytest.mark.asyncio
    async def test_second_check_finds_nothing_new(self, worker, remote, received, sender):
        remote.add("messages", Message(2, 1, "hello", timestamp=now_millis()).to_document())
        await worker.check_once(1)
        assert await worker.check_once(1) == []
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unknown_sender_is_stored_but_not_reported(self, worker, remote, messages, received):
        remote.add("messages", Message(9, 1, "who", timestamp=now_millis()).to_document())
        fresh = await worker.check_once(1)
        assert [m.text for m in fresh] == ["who"]
        assert received == []
        assert len(messages.store.for_user(1)) == 1

    @pytest.mark.asyncio
    async def test_offline_skips_without_touching_check_time(self, worker, gate, db):
        gate.online = False
        assert await worker.check_once(1) is None
        assert db.get_meta(LAST_CHECK_KEY) is None


class TestRun:
    @pytest.mark.asyncio
    async def test_retries_then_raises(self, worker, remote):
        remote.failing.add("query")
        with pytest.raises(RemoteStoreError):
            await worker.run(1)
        # Each attempt tries the range query, then the plain receiver query
        assert remote.calls.count("query") == 2 * worker.max_attempts

    @pytest.mark.asyncio
    async def test_recovers_on_later_attempt(self, worker, messages):
        messages.pull_received = AsyncMock(side_effect=[RemoteStoreError("timeout"), []])
        assert await worker.run(1) == []
        assert messages.pull_received.await_count == 2
