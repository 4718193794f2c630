"""Tests for user registration, login and lookups."""

import dataclasses

import pytest

from job_board.sync.identity import map_remote_key
from job_board.sync.results import SyncStatus
from job_board.users.models import User
from job_board.users.repository import UserExistsError


def make_user(email="anna@example.com", username="anna", first_name="Anna", last_name="Ivanova"):
    return User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone="89001234567",
        username=username,
        password="secret1",
    )


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_online(self, users, remote):
        result = await users.register(make_user())
        assert result.status is SyncStatus.REMOTE
        doc_id = remote.query("users")[0][0]
        assert result.key == map_remote_key(doc_id)
        assert remote.get("users", doc_id)["email"] == "anna@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, users):
        await users.register(make_user())
        with pytest.raises(UserExistsError):
            await users.register(make_user(email=" ANNA@example.com", username="other"))

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected_offline(self, users, gate):
        gate.online = False
        await users.register(make_user())
        with pytest.raises(UserExistsError):
            await users.register(make_user(email="new@example.com", username="Anna"))

    @pytest.mark.asyncio
    async def test_offline_registration_key(self, users, gate):
        gate.online = False
        user = make_user()
        result = await users.register(user)
        assert result.status is SyncStatus.OFFLINE
        assert result.key == user.offline_key()


class TestLogin:
    @pytest.mark.asyncio
    async def test_authenticate_remote_and_mirror(self, users, users_remote_doc):
        doc_id = users_remote_doc
        found = await users.authenticate("Anna@Example.com", "secret1")
        assert found.status is SyncStatus.REMOTE
        assert found.record.id == map_remote_key(doc_id)
        assert users.store.get(found.record.id) is not None

    @pytest.mark.asyncio
    async def test_wrong_password(self, users, users_remote_doc):
        found = await users.authenticate("anna@example.com", "nope")
        assert found.record is None

    @pytest.mark.asyncio
    async def test_authenticate_local_when_remote_fails(self, users, remote, gate):
        gate.online = False
        await users.register(make_user())
        gate.online = True
        remote.failing.add("query")
        found = await users.authenticate("anna@example.com", "secret1")
        assert found.status is SyncStatus.LOCAL_FALLBACK
        assert found.record.username == "anna"

    @pytest.mark.asyncio
    async def test_remote_miss_checks_local(self, users, gate):
        gate.online = False
        await users.register(make_user())
        gate.online = True
        found = await users.get_by_email("anna@example.com")
        assert found.record is not None
        assert found.status is SyncStatus.LOCAL


@pytest.fixture
def users_remote_doc(remote):
    return remote.add("users", make_user().to_document())


class TestUserQueries:
    @pytest.mark.asyncio
    async def test_list_all_sorted_by_username(self, users, remote):
        remote.add("users", make_user(email="z@example.com", username="zed").to_document())
        remote.add("users", make_user().to_document())
        result = await users.list_all()
        assert [u.username for u in result] == ["anna", "zed"]

    @pytest.mark.asyncio
    async def test_get_by_id_scans_remote(self, users, users_remote_doc):
        found = await users.get_by_id(map_remote_key(users_remote_doc))
        assert found.record.email == "anna@example.com"

    @pytest.mark.asyncio
    async def test_search_merges_fields(self, users, remote):
        remote.add("users", make_user().to_document())
        remote.add("users", make_user(email="b@example.com", username="boris", first_name="anatoly").to_document())
        remote.add("users", make_user(email="c@example.com", username="carl", first_name="Carl").to_document())
        result = await users.search_users("%an%")
        assert result.status is SyncStatus.REMOTE
        assert sorted(u.username for u in result) == ["anna", "boris"]

    @pytest.mark.asyncio
    async def test_search_respects_limit(self, users, remote):
        for i in range(5):
            remote.add("users", make_user(email=f"u{i}@example.com", username=f"user{i}").to_document())
        result = await users.search_users("user", limit=3)
        assert len(result) == 3

    @pytest.mark.asyncio
    async def test_search_local_fallback_when_all_queries_fail(self, users, remote):
        users.store.upsert(dataclasses.replace(make_user(), id=1))
        remote.failing.add("query")
        result = await users.search_users("ivan")
        assert result.status is SyncStatus.LOCAL_FALLBACK
        assert [u.id for u in result] == [1]


class TestProfilePhoto:
    @pytest.mark.asyncio
    async def test_photo_id_updates_both_stores(self, users, remote):
        written = await users.register(make_user())
        result = await users.update_profile_photo(written.key, 5)
        assert result.status is SyncStatus.REMOTE
        assert users.store.get(written.key).profile_photo_id == 5
        assert remote.query("users")[0][1]["profilePhotoId"] == 5

    @pytest.mark.asyncio
    async def test_photo_id_out_of_range(self, users):
        with pytest.raises(ValueError):
            await users.update_profile_photo(1, 9)

    @pytest.mark.asyncio
    async def test_photo_url_local_when_remote_fails(self, users, remote):
        written = await users.register(make_user())
        remote.failing.add("update")
        result = await users.update_profile_photo_url(written.key, "https://img/a.png")
        assert result.status is SyncStatus.LOCAL_FALLBACK
        assert users.store.get(written.key).photo() == "https://img/a.png"
        assert remote.query("users")[0][1]["profilePhotoUrl"] == ""
