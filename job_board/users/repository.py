"""Users: registration, login and profile lookups across both stores."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from job_board.storage.remote import equals, prefix
from job_board.sync.dedup import DuplicateResolver
from job_board.sync.identity import normalize
from job_board.sync.repository import DualStoreRepository
from job_board.sync.results import LookupResult, ReadResult, SyncStatus, WriteResult

from .models import User, validate_photo_id

logger = logging.getLogger("job_board.users")

COLLECTION = "users"
SEARCH_FIELDS = ("username", "firstName", "lastName")


class UserExistsError(ValueError):
    """Registration attempted with an email or username that is already taken."""


class UserRepository(DualStoreRepository[User]):
    collection = COLLECTION
    record_type = User

    def make_resolver(self) -> DuplicateResolver[User]:
        return DuplicateResolver(lambda user: user.business_key, delete_local=self.store.delete)

    def local_matches(self, user: User) -> list[User]:
        return self.store.conflicting(user)

    def sort(self, users: list[User]) -> list[User]:
        return sorted(users, key=lambda u: (u.username, u.id))

    # -- registration and login ------------------------------------------------

    async def insert_user(self, user: User) -> WriteResult:
        return await self.write(user)

    async def register(self, user: User) -> WriteResult:
        """Insert a new account; raises UserExistsError when email or username is taken."""
        if (await self.get_by_email(user.email)).found:
            raise UserExistsError(f"Email {user.email} is already registered")
        if (await self.get_by_username(user.username)).found:
            raise UserExistsError(f"Username {user.username} is already taken")
        result = await self.insert_user(user)
        logger.info("Registered user %s as %d (%s)", user.username, result.key, result.status.value)
        return result

    async def authenticate(self, email: str, password: str) -> LookupResult[User]:
        """Plaintext credential comparison, remote first."""
        email = normalize(email)
        return await self.lookup(
            lambda: self.query_records(
                filters=[equals("email", email), equals("password", password)], limit=1
            ),
            lambda: self.store.by_credentials(email, password),
        )

    async def get_by_email(self, email: str) -> LookupResult[User]:
        email = normalize(email)
        return await self.lookup(
            lambda: self.query_records(filters=[equals("email", email)], limit=1),
            lambda: self.store.by_email(email),
        )

    async def get_by_username(self, username: str) -> LookupResult[User]:
        username = normalize(username)
        return await self.lookup(
            lambda: self.query_records(filters=[equals("username", username)], limit=1),
            lambda: self.store.by_username(username),
        )

    async def get_by_id(self, user_id: int) -> LookupResult[User]:
        return await self.get(user_id)

    # -- listings --------------------------------------------------------------

    async def list_all(self) -> ReadResult[User]:
        return await self.read(self.query_records, self.store.list_all)

    def watch_all(self) -> AsyncIterator[list[User]]:
        return self.watch(self.query_records, self.store.list_all)

    async def search_users(self, query: str, limit: int = 20) -> ReadResult[User]:
        """Prefix search on username, first name and last name.

        Each remote field query is tried on its own; the local store is used
        only when none of them succeeded.
        """
        term = query.strip().strip("%").lower()
        if not term:
            return ReadResult([], SyncStatus.LOCAL)

        status = SyncStatus.OFFLINE
        if await self.is_online():
            found = await asyncio.to_thread(self._search_remote, term, limit)
            if found is not None:
                users = await asyncio.to_thread(self.resolver.resolve, found)
                await asyncio.to_thread(self.mirror, users)
                return ReadResult(self.sort(users)[:limit], SyncStatus.REMOTE)
            status = SyncStatus.LOCAL_FALLBACK

        try:
            users = await asyncio.to_thread(self.store.search, term, limit)
        except Exception as e:
            logger.error("Local user search failed: %s", e)
            return ReadResult([], SyncStatus.FAILED)
        return ReadResult(users, status)

    def _search_remote(self, term: str, limit: int) -> Optional[list[User]]:
        found: dict[int, User] = {}
        succeeded = False
        for field in SEARCH_FIELDS:
            try:
                users = self.query_records(filters=prefix(field, term), limit=limit)
            except Exception as e:
                logger.warning("Remote user search on %s failed: %s", field, e)
                continue
            succeeded = True
            for user in users:
                found.setdefault(user.id, user)
        return list(found.values()) if succeeded else None

    # -- profile photo ---------------------------------------------------------

    async def update_profile_photo(self, user_id: int, photo_id: int) -> WriteResult:
        validate_photo_id(photo_id)
        await asyncio.to_thread(self.store.set_photo_id, user_id, photo_id)
        return await self._update_remote(user_id, {"profilePhotoId": photo_id})

    async def update_profile_photo_url(self, user_id: int, photo_url: Optional[str]) -> WriteResult:
        await asyncio.to_thread(self.store.set_photo_url, user_id, photo_url or None)
        return await self._update_remote(user_id, {"profilePhotoUrl": photo_url or ""})

    async def _update_remote(self, user_id: int, fields: dict) -> WriteResult:
        """Re-locate the user's document by email and change only ``fields``."""
        if not await self.is_online():
            return WriteResult(user_id, SyncStatus.OFFLINE)
        user = await asyncio.to_thread(self.store.get, user_id)
        if user is None:
            logger.warning("No local user %d to locate remotely", user_id)
            return WriteResult(user_id, SyncStatus.LOCAL)
        try:
            docs = await asyncio.to_thread(
                self.remote.query, COLLECTION, filters=[equals("email", user.email)], limit=1
            )
            if docs:
                await asyncio.to_thread(self.remote.update, COLLECTION, docs[0][0], fields)
        except Exception as e:
            logger.warning("Remote profile update for user %d failed: %s", user_id, e)
            return WriteResult(user_id, SyncStatus.LOCAL_FALLBACK)
        return WriteResult(user_id, SyncStatus.REMOTE)
