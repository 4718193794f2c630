"""Tests for message sends, conversation sync and inbox pulls."""

import asyncio
import dataclasses

import pytest

from job_board.messages.models import Message
from job_board.notifications.outbox import COLLECTION as OUTBOX
from job_board.storage.remote import RemoteStoreError
from job_board.storage.users import UserStore
from job_board.sync.identity import map_remote_key
from job_board.sync.results import SyncStatus
from job_board.users.models import User


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_send_online(self, messages, remote):
        result = await messages.send_message(Message(1, 2, "hello"))
        assert result.status is SyncStatus.REMOTE
        doc_id = remote.query("messages")[0][0]
        assert result.key == map_remote_key(doc_id)
        assert messages.store.get(result.key).text == "hello"

    @pytest.mark.asyncio
    async def test_concurrent_sends_store_one_message(self, messages, remote):
        first, second = await asyncio.gather(
            messages.send_message(Message(1, 2, "hello")),
            messages.send_message(Message(1, 2, "hello")),
        )
        assert first.key == second.key
        assert [first.duplicate, second.duplicate].count(True) == 1
        assert len(messages.store.between(1, 2)) == 1
        assert remote.count("messages") == 1

    @pytest.mark.asyncio
    async def test_concurrent_sends_offline(self, messages, gate):
        gate.online = False
        results = await asyncio.gather(*[messages.send_message(Message(1, 2, "hey")) for _ in range(3)])
        assert len({r.key for r in results}) == 1
        assert len(messages.store.between(1, 2)) == 1

    @pytest.mark.asyncio
    async def test_repeat_outside_window_is_a_new_message(self, messages):
        await messages.send_message(Message(1, 2, "ok", timestamp=1000))
        await messages.send_message(Message(1, 2, "ok", timestamp=9000))
        assert [m.timestamp for m in messages.store.between(1, 2)] == [1000, 9000]

    @pytest.mark.asyncio
    async def test_offline_sends_between_windows_both_kept(self, messages, gate):
        gate.online = False
        first = await messages.send_message(Message(1, 2, "ok", timestamp=10000))
        second = await messages.send_message(Message(1, 2, "ok", timestamp=14000))
        assert first.key != second.key
        assert not first.duplicate and not second.duplicate
        assert [m.timestamp for m in messages.store.between(1, 2)] == [10000, 14000]

    @pytest.mark.asyncio
    async def test_online_sends_between_windows_both_kept(self, messages, remote):
        await messages.send_message(Message(1, 2, "ok", timestamp=10000))
        await messages.send_message(Message(1, 2, "ok", timestamp=14000))
        assert [m.timestamp for m in messages.store.between(1, 2)] == [10000, 14000]
        assert remote.count("messages") == 2

    @pytest.mark.asyncio
    async def test_send_locks_released(self, messages):
        await asyncio.gather(
            messages.send_message(Message(1, 2, "hello")),
            messages.send_message(Message(1, 2, "hello")),
            messages.send_message(Message(3, 4, "hey")),
        )
        assert messages._send_locks == {}

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, messages):
        with pytest.raises(ValueError):
            await messages.send_message(Message(1, 2, "   "))

    @pytest.mark.asyncio
    async def test_notification_queued_with_sender_name(self, messages, remote, db):
        UserStore(db).upsert(User("Anna", "Ivanova", "a@b.co", "89001234567", "anna", "secret1", id=1))

        await messages.send_message(Message(1, 2, "hello"))
        docs = remote.query(OUTBOX)
        assert len(docs) == 1
        body = docs[0][1]
        assert body["receiverId"] == "2"
        assert body["senderId"] == "1"
        assert body["senderName"] == "Anna Ivanova"
        assert body["messageText"] == "hello"
        assert body["sent"] is False

    @pytest.mark.asyncio
    async def test_no_notification_when_not_remote(self, messages, remote):
        remote.failing.add("add")
        result = await messages.send_message(Message(1, 2, "hello"))
        assert result.status is SyncStatus.LOCAL_FALLBACK
        assert remote.count(OUTBOX) == 0

    @pytest.mark.asyncio
    async def test_outbox_failure_does_not_fail_send(self, messages, remote):
        original_add = remote.add

        def add(collection, data):
            if collection == OUTBOX:
                raise RuntimeError("notifier collection locked")
            return original_add(collection, data)

        remote.add = add
        result = await messages.send_message(Message(1, 2, "hello"))
        assert result.status is SyncStatus.REMOTE


class TestConversation:
    @pytest.mark.asyncio
    async def test_ordered_oldest_first(self, messages, gate):
        gate.online = False
        for ts, text in ((100, "second"), (50, "first"), (200, "third")):
            await messages.send_message(Message(1, 2, text, timestamp=ts))
        result = await messages.sync_conversation(1, 2)
        assert [m.timestamp for m in result] == [50, 100, 200]

    @pytest.mark.asyncio
    async def test_sync_pulls_both_directions(self, messages, remote):
        remote.add("messages", Message(1, 2, "hi", timestamp=100).to_document())
        remote.add("messages", Message(2, 1, "hello", timestamp=200).to_document())
        remote.add("messages", Message(3, 1, "spam", timestamp=150).to_document())
        result = await messages.sync_conversation(1, 2)
        assert result.status is SyncStatus.REMOTE
        assert [m.text for m in result] == ["hi", "hello"]
        assert [m.text for m in messages.store.between(1, 2)] == ["hi", "hello"]

    @pytest.mark.asyncio
    async def test_sync_replaces_local_copy_within_window(self, messages, remote):
        local = Message(1, 2, "hi", timestamp=1000)
        messages.store.upsert(dataclasses.replace(local, id=local.offline_key()))
        doc_id = remote.add("messages", Message(1, 2, "hi", timestamp=3500).to_document())
        await messages.sync_conversation(1, 2)
        assert [m.id for m in messages.store.between(1, 2)] == [map_remote_key(doc_id)]

    @pytest.mark.asyncio
    async def test_offline_send_survives_online_sync(self, messages, gate, remote):
        gate.online = False
        sent = await messages.send_message(Message(1, 2, "sent offline", timestamp=100))
        gate.online = True
        remote.add("messages", Message(2, 1, "reply", timestamp=200).to_document())
        result = await messages.sync_conversation(1, 2)
        assert result.status is SyncStatus.REMOTE
        assert [m.text for m in result] == ["sent offline", "reply"]
        assert sent.key in [m.id for m in result]

    @pytest.mark.asyncio
    async def test_sync_falls_back_to_local(self, messages, remote):
        messages.store.upsert(Message(1, 2, "hi", timestamp=10, id=5))
        remote.failing.add("query")
        result = await messages.sync_conversation(1, 2)
        assert result.status is SyncStatus.LOCAL_FALLBACK
        assert [m.id for m in result] == [5]

    @pytest.mark.asyncio
    async def test_all_for_user_newest_first(self, messages):
        messages.store.upsert(Message(1, 2, "a", timestamp=10, id=1))
        messages.store.upsert(Message(3, 1, "b", timestamp=30, id=2))
        messages.store.upsert(Message(2, 3, "c", timestamp=20, id=3))
        result = await messages.get_all_for_user(1)
        assert [m.id for m in result] == [2, 1]

    @pytest.mark.asyncio
    async def test_get_by_id(self, messages, remote):
        doc_id = remote.add("messages", Message(1, 2, "hi", timestamp=10).to_document())
        found = await messages.get_by_id(map_remote_key(doc_id))
        assert found.record.text == "hi"


class TestPullReceived:
    @pytest.mark.asyncio
    async def test_stores_new_messages_locally_only(self, messages, remote):
        remote.add("messages", Message(2, 1, "new", timestamp=2000).to_document())
        remote.add("messages", Message(2, 1, "old", timestamp=500).to_document())
        remote.add("messages", Message(1, 1, "self", timestamp=2000).to_document())
        remote.add("messages", Message(2, 3, "not mine", timestamp=2000).to_document())
        remote.calls.clear()

        fresh = await messages.pull_received(1, since=1000)
        assert [m.text for m in fresh] == ["new"]
        assert [m.text for m in messages.store.for_user(1)] == ["new"]
        assert "add" not in remote.calls
        assert remote.count("messages") == 4

    @pytest.mark.asyncio
    async def test_skips_messages_already_known(self, messages, remote):
        messages.store.upsert(Message(2, 1, "seen", timestamp=1500, id=9))
        remote.add("messages", Message(2, 1, "seen", timestamp=1500).to_document())
        assert await messages.pull_received(1, since=1000) == []

    @pytest.mark.asyncio
    async def test_repeated_text_outside_window_is_new(self, messages, remote):
        messages.store.upsert(Message(2, 1, "ok", timestamp=1000, id=9))
        remote.add("messages", Message(2, 1, "ok", timestamp=9_000_000).to_document())
        fresh = await messages.pull_received(1, since=5_000_000)
        assert [(m.text, m.timestamp) for m in fresh] == [("ok", 9_000_000)]
        assert [m.timestamp for m in messages.store.for_user(1)] == [9_000_000, 1000]

    @pytest.mark.asyncio
    async def test_repeated_text_inside_window_is_known(self, messages, remote):
        messages.store.upsert(Message(2, 1, "ok", timestamp=6000, id=9))
        remote.add("messages", Message(2, 1, "ok", timestamp=9000).to_document())
        assert await messages.pull_received(1, since=5000) == []

    @pytest.mark.asyncio
    async def test_offline_returns_none(self, messages, gate):
        gate.online = False
        assert await messages.pull_received(1, since=0) is None

    @pytest.mark.asyncio
    async def test_remote_error_propagates(self, messages, remote):
        remote.failing.add("query")
        with pytest.raises(RemoteStoreError):
            await messages.pull_received(1, since=0)
