"""Jobs: remote-first listings and searches, dual writes keyed by business identity."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from job_board.storage.remote import Filter, Order, equals, prefix
from job_board.sync.dedup import DuplicateResolver
from job_board.sync.repository import DualStoreRepository
from job_board.sync.results import LookupResult, ReadResult, SyncStatus, WriteResult

from .models import Job

logger = logging.getLogger("job_board.jobs")

COLLECTION = "jobs"
NEWEST_FIRST = [Order("createdAt", descending=True)]


def _identity_filters(job: Job) -> list[Filter]:
    return [
        equals("employerId", str(job.employer_id)),
        equals("title", job.title),
        equals("createdAt", job.created_at),
    ]


class JobRepository(DualStoreRepository[Job]):
    collection = COLLECTION
    record_type = Job

    def make_resolver(self) -> DuplicateResolver[Job]:
        return DuplicateResolver(lambda job: job.business_key, delete_local=self.store.delete)

    def local_matches(self, job: Job) -> list[Job]:
        return self.store.find_by_business_key(*job.business_key)

    def sort(self, jobs: list[Job]) -> list[Job]:
        return sorted(jobs, key=lambda j: (-j.created_at, j.id))

    def sweep_local(self):
        self.store.delete_all_duplicates()

    # -- listings ------------------------------------------------------------

    def _all_remote(self) -> list[Job]:
        return self.query_records(order_by=NEWEST_FIRST)

    async def list_all(self) -> ReadResult[Job]:
        return await self.read(self._all_remote, self.store.list_all)

    def watch_all(self) -> AsyncIterator[list[Job]]:
        return self.watch(self._all_remote, self.store.list_all)

    async def get_by_id(self, job_id: int) -> LookupResult[Job]:
        return await self.get(job_id)

    def _employer_remote(self, employer_id: int):
        return lambda: self.query_records(filters=[equals("employerId", str(employer_id))])

    async def by_employer(self, employer_id: int) -> ReadResult[Job]:
        return await self.read(
            self._employer_remote(employer_id),
            lambda: self.store.list_by_employer(employer_id),
            local_view=True,
        )

    def watch_by_employer(self, employer_id: int) -> AsyncIterator[list[Job]]:
        return self.watch(
            self._employer_remote(employer_id),
            lambda: self.store.list_by_employer(employer_id),
            local_view=True,
        )

    async def search_by_title(self, query: str) -> ReadResult[Job]:
        """Remote title prefix match; the local fallback matches substrings."""
        query = query.strip()
        if not query:
            return await self.list_all()
        return await self.read(
            lambda: self.query_records(filters=prefix("title", query)),
            lambda: self.store.search_by_title(query),
        )

    async def search_with_filters(
        self,
        query: str = "",
        experience: Optional[str] = None,
        city: Optional[str] = None,
        min_salary: Optional[int] = None,
    ) -> ReadResult[Job]:
        query = query.strip()
        filters = self._filters(experience, city, min_salary)
        if query:
            filters = prefix("title", query) + filters
        return await self.read(
            lambda: self.query_records(filters=filters),
            lambda: self.store.filter(query or None, experience, city, min_salary),
        )

    async def filter_jobs(
        self,
        experience: Optional[str] = None,
        city: Optional[str] = None,
        min_salary: Optional[int] = None,
    ) -> ReadResult[Job]:
        filters = self._filters(experience, city, min_salary)
        return await self.read(
            lambda: self.query_records(filters=filters),
            lambda: self.store.filter(None, experience, city, min_salary),
        )

    async def filter_by_experience(self, experience: str) -> ReadResult[Job]:
        return await self.read(
            lambda: self.query_records(filters=[equals("experience", experience)]),
            lambda: self.store.filter_by_experience(experience),
        )

    @staticmethod
    def _filters(experience, city, min_salary) -> list[Filter]:
        # Results are re-sorted client side, so no remote ordering is requested
        filters = []
        if experience is not None:
            filters.append(equals("experience", experience))
        if city:
            filters.extend(prefix("city", city))
        if min_salary is not None:
            filters.append(Filter("salaryFrom", ">=", min_salary))
        return filters

    # -- writes --------------------------------------------------------------

    async def insert_job(self, job: Job) -> WriteResult:
        job.validate()
        return await self.write(job)

    async def update_job(self, job: Job) -> WriteResult:
        """Update the local row, then overwrite the matching remote document.

        The remote document is located by the stored row's business identity,
        since ``job.id`` is a hash and not the document id.
        """
        job.validate()
        existing = await asyncio.to_thread(self.store.get, job.id)
        updated = await asyncio.to_thread(self.store.update, job)
        if not updated:
            logger.warning("Update of unknown job %d applied to no local row", job.id)

        locate = existing or job
        if not await self.is_online():
            return WriteResult(job.id, SyncStatus.OFFLINE)
        try:
            docs = await asyncio.to_thread(
                self.remote.query, COLLECTION, filters=_identity_filters(locate), limit=1
            )
            if docs:
                await asyncio.to_thread(self.remote.set, COLLECTION, docs[0][0], job.to_document())
            else:
                logger.info("No remote document for job %d; local update only", job.id)
        except Exception as e:
            logger.warning("Remote update of job %d failed: %s", job.id, e)
            return WriteResult(job.id, SyncStatus.LOCAL_FALLBACK)
        return WriteResult(job.id, SyncStatus.REMOTE)

    async def delete_job(self, job: Job) -> WriteResult:
        """Delete every remote document with the job's identity, then the local rows."""
        status = SyncStatus.OFFLINE
        if await self.is_online():
            try:
                docs = await asyncio.to_thread(self.find_documents, _identity_filters(job))
                for doc_id, _ in docs:
                    await asyncio.to_thread(self.remote.delete, COLLECTION, doc_id)
                status = SyncStatus.REMOTE
            except Exception as e:
                logger.warning("Remote delete of job %d failed: %s", job.id, e)
                status = SyncStatus.LOCAL_FALLBACK

        await asyncio.to_thread(self._delete_local, job)
        return WriteResult(job.id, status)

    def _delete_local(self, job: Job):
        self.store.delete(job.id)
        for other in self.store.find_by_business_key(*job.business_key):
            self.store.delete(other.id)
