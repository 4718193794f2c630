"""Tests for the local SQL store."""

import dataclasses

import pytest

from job_board.jobs.models import Job
from job_board.messages.models import Message
from job_board.storage.jobs import JobStore
from job_board.storage.messages import MessageStore
from job_board.storage.session import SessionStore
from job_board.storage.users import UserStore
from job_board.users.models import User


@pytest.fixture
def job_store(db):
    return JobStore(db)


@pytest.fixture
def user_store(db):
    return UserStore(db)


@pytest.fixture
def sample_job():
    return Job(
        title="Backend Developer",
        employer_id=1,
        salary_from=100000,
        salary_to=150000,
        experience="1-3 years",
        city="Kazan",
        created_at=1_700_000_000_000,
    )


def make_user(email="anna@example.com", username="anna", **overrides):
    return User(
        first_name=overrides.pop("first_name", "Anna"),
        last_name=overrides.pop("last_name", "Ivanova"),
        email=email,
        phone="89001234567",
        username=username,
        password="secret1",
        **overrides,
    )


class TestJobStore:
    def test_upsert_with_explicit_key(self, job_store, sample_job):
        sample_job.id = 123456789012
        assert job_store.upsert(sample_job) == 123456789012
        assert job_store.get(123456789012) == sample_job

    def test_upsert_without_key_assigns_one(self, job_store, sample_job):
        key = job_store.upsert(sample_job)
        assert key > 0
        assert job_store.get(key).title == "Backend Developer"

    def test_upsert_replaces(self, job_store, sample_job):
        sample_job.id = 5
        job_store.upsert(sample_job)
        sample_job.city = "Moscow"
        job_store.upsert(sample_job)
        assert len(job_store.list_all()) == 1
        assert job_store.get(5).city == "Moscow"

    def test_list_all_newest_first(self, job_store):
        for i, created in enumerate([100, 300, 200], start=1):
            job_store.upsert(Job(title=f"Job {i}", employer_id=1, created_at=created, id=i))
        assert [j.created_at for j in job_store.list_all()] == [300, 200, 100]

    def test_search_and_filters(self, job_store, sample_job):
        sample_job.id = 1
        job_store.upsert(sample_job)
        job_store.upsert(Job(title="Frontend Developer", employer_id=2, city="Moscow", id=2, salary_from=50000))
        assert [j.id for j in job_store.search_by_title("Backend")] == [1]
        assert len(job_store.search_by_title("Developer")) == 2
        assert [j.id for j in job_store.filter(city="Kaz")] == [1]
        assert [j.id for j in job_store.filter(min_salary=60000)] == [1]
        assert [j.id for j in job_store.filter_by_experience("1-3")] == [1]
        assert [j.id for j in job_store.list_by_employer(2)] == [2]

    def test_search_escapes_wildcards(self, job_store, sample_job):
        job_store.upsert(sample_job)
        assert job_store.search_by_title("%") == []

    def test_delete_all_duplicates_keeps_lowest_key(self, job_store, sample_job):
        for key in (30, 10, 20):
            sample_job.id = key
            job_store.upsert(sample_job)
        assert job_store.delete_all_duplicates() == 2
        assert [j.id for j in job_store.list_all()] == [10]
        assert job_store.delete_all_duplicates() == 0

    def test_delete_all_duplicates_keeps_mirrored_row(self, job_store, sample_job):
        job_store.upsert(dataclasses.replace(sample_job, id=5))
        job_store.upsert(dataclasses.replace(sample_job, id=900, remote_id="doc-1"))
        assert job_store.delete_all_duplicates() == 1
        kept = job_store.list_all()
        assert [(j.id, j.remote_id) for j in kept] == [(900, "doc-1")]

    def test_remote_id_persisted(self, job_store, sample_job):
        job_store.upsert(dataclasses.replace(sample_job, id=7, remote_id="doc-7"))
        assert job_store.get(7).remote_id == "doc-7"

    def test_update_unknown_key(self, job_store, sample_job):
        sample_job.id = 99
        assert job_store.update(sample_job) is False


class TestUserStore:
    def test_lookups_are_case_insensitive(self, user_store):
        user_store.upsert(make_user(id=1))
        assert user_store.by_email(" ANNA@example.com").id == 1
        assert user_store.by_username("Anna").id == 1
        assert user_store.by_credentials("anna@example.com", "secret1").id == 1
        assert user_store.by_credentials("anna@example.com", "wrong") is None

    def test_upsert_replaces_conflicting_rows(self, user_store):
        user_store.upsert(make_user(id=1))
        user_store.upsert(make_user(id=2))
        assert [u.id for u in user_store.list_all()] == [2]

    def test_search_matches_full_name(self, user_store):
        user_store.upsert(make_user(id=1))
        user_store.upsert(make_user(email="b@example.com", username="boris", first_name="Boris", last_name="Petrov", id=2))
        assert [u.id for u in user_store.search("anna iv")] == [1]
        assert [u.id for u in user_store.search("PETR")] == [2]
        assert len(user_store.search("%", limit=1)) == 1

    def test_photo_updates(self, user_store):
        user_store.upsert(make_user(id=1))
        assert user_store.set_photo_id(1, 4)
        assert user_store.set_photo_url(1, "https://img/a.png")
        user = user_store.get(1)
        assert user.profile_photo_id == 4
        assert user.photo() == "https://img/a.png"
        assert not user_store.set_photo_id(2, 4)


class TestMessageStore:
    def test_between_is_oldest_first_in_both_directions(self, db):
        store = MessageStore(db)
        store.upsert(Message(1, 2, "b", timestamp=100, id=1))
        store.upsert(Message(2, 1, "a", timestamp=50, id=2))
        store.upsert(Message(1, 3, "other", timestamp=75, id=3))
        assert [m.timestamp for m in store.between(1, 2)] == [50, 100]
        assert [m.timestamp for m in store.for_user(1)] == [100, 75, 50]


class TestLocalDatabase:
    def test_meta_round_trip(self, db):
        assert db.get_meta("missing") is None
        db.set_meta("k", "v1")
        db.set_meta("k", "v2")
        assert db.get_meta("k") == "v2"
        db.delete_meta("k")
        assert db.get_meta("k") is None

    def test_stats(self, db, job_store, sample_job):
        job_store.upsert(sample_job)
        db.set_meta("last_message_check_time", "1000")
        stats = db.get_stats()
        assert stats["jobs"] == 1
        assert stats["users"] == 0
        assert stats["jobs_by_employer"] == {1: 1}
        assert stats["last_message_check"] == "1000"


class TestSessionStore:
    def test_user_session(self, db):
        session = SessionStore(db)
        assert not session.is_logged_in()
        session.save_session(42)
        assert session.get_user_id() == 42
        assert not session.is_guest()
        session.clear()
        assert session.get_user_id() is None

    def test_guest_session(self, db):
        session = SessionStore(db)
        session.save_session(42)
        session.save_guest_session()
        assert session.is_guest()
        assert session.get_user_id() is None
        assert session.is_logged_in()
