"""Dual-store reader/writer shared by the job, message and user repositories.

The local store is the durable source of truth; the remote document store is
a best-effort mirror. Reads try the remote store first (when the gate is open),
mirror what they got into the local store and fall back to the local store on
any remote failure. Writes go to the remote store first so the local key can
be derived from the remote document id, and always end with a local upsert.

Every blocking call runs in a worker thread, so each remote and local
operation is a suspension point for the caller's event loop.
"""

import asyncio
import dataclasses
import logging
from typing import AsyncIterator, Callable, Generic, Optional, TypeVar

from job_board.storage.remote import Document, DocumentStore, Filter, Order
from job_board.sync.connectivity import ConnectivityGate
from job_board.sync.dedup import DuplicateResolver
from job_board.sync.identity import map_remote_key
from job_board.sync.results import LookupResult, ReadResult, SyncStatus, WriteResult

logger = logging.getLogger("job_board.sync")

T = TypeVar("T")


class DualStoreRepository(Generic[T]):
    """Base class; subclasses name the collection and the business identity."""

    collection: str = ""
    record_type: type = object

    def __init__(self, store, remote: Optional[DocumentStore], gate: ConnectivityGate):
        self.store = store
        self.remote = remote
        self.gate = gate
        self.resolver: DuplicateResolver[T] = self.make_resolver()

    # -- entity hooks ------------------------------------------------------

    def make_resolver(self) -> DuplicateResolver[T]:
        raise NotImplementedError

    def local_matches(self, record: T) -> list[T]:
        """Local rows that hold the same logical record as ``record``."""
        raise NotImplementedError

    def sort(self, records: list[T]) -> list[T]:
        return records

    def sweep_local(self):
        """Table-wide local duplicate cleanup run before local reads."""

    def from_document(self, doc_id: str, data: dict) -> T:
        return self.record_type.from_document(data, id=map_remote_key(doc_id), remote_id=doc_id)

    # -- gate and remote helpers -------------------------------------------

    async def is_online(self) -> bool:
        if self.remote is None:
            return False
        try:
            return await asyncio.to_thread(self.gate.is_reachable)
        except Exception as e:
            logger.warning("Connectivity check failed: %s", e)
            return False

    def query_records(
        self,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[list[Order]] = None,
        limit: Optional[int] = None,
    ) -> list[T]:
        """Run a remote query and map the documents to records (blocking)."""
        docs = self.remote.query(self.collection, filters=filters, order_by=order_by, limit=limit)
        return self.to_records(docs)

    def to_records(self, docs: list[Document]) -> list[T]:
        records = []
        for doc_id, data in docs:
            try:
                records.append(self.from_document(doc_id, data))
            except ValueError as e:
                logger.warning("Skipping malformed %s document %s: %s", self.collection, doc_id, e)
        return records

    def find_documents(self, filters: list[Filter]) -> list[Document]:
        return self.remote.query(self.collection, filters=filters)

    # -- reads -------------------------------------------------------------

    async def read(
        self,
        fetch_remote: Callable[[], list[T]],
        fetch_local: Callable[[], list[T]],
        local_view: bool = False,
    ) -> ReadResult[T]:
        """Remote-first listing with local fallback. Never raises.

        With ``local_view`` a successful remote read only refreshes the local
        store, and the listing returned is the local one. Rows written offline
        that never reached the remote store stay visible that way.
        """
        status = SyncStatus.OFFLINE
        if await self.is_online():
            try:
                records = await asyncio.to_thread(fetch_remote)
            except Exception as e:
                logger.warning("Remote %s read failed, using local store: %s", self.collection, e)
                status = SyncStatus.LOCAL_FALLBACK
            else:
                records = await asyncio.to_thread(self.resolver.resolve, records)
                await asyncio.to_thread(self.mirror, records)
                if local_view:
                    try:
                        records = await asyncio.to_thread(self._read_local, fetch_local)
                    except Exception as e:
                        logger.error("Local %s read after refresh failed: %s", self.collection, e)
                return ReadResult(self.sort(records), SyncStatus.REMOTE)
        else:
            logger.debug("Gate closed, reading %s locally", self.collection)

        try:
            records = await asyncio.to_thread(self._read_local, fetch_local)
        except Exception as e:
            logger.error("Local %s read failed: %s", self.collection, e)
            return ReadResult([], SyncStatus.FAILED)
        return ReadResult(records, status)

    def _read_local(self, fetch_local: Callable[[], list[T]]) -> list[T]:
        try:
            self.sweep_local()
        except Exception as e:
            logger.warning("Local duplicate sweep on %s failed: %s", self.collection, e)
        return self.sort(self.resolver.resolve(fetch_local()))

    async def watch(
        self,
        fetch_remote: Callable[[], list[T]],
        fetch_local: Callable[[], list[T]],
        local_view: bool = False,
    ) -> AsyncIterator[list[T]]:
        """Yield the current listing, then a fresh local snapshot after each change.

        The remote refresh runs once up front and feeds the local store; after
        that the generator follows the local store only. Consecutive identical
        snapshots are not repeated. Closing the generator (or cancelling the
        task iterating it) ends the subscription.
        """
        subscription = self.store.db.changes.subscribe(self.store.table)
        try:
            result = await self.read(fetch_remote, fetch_local, local_view)
            last = result.records
            yield last
            while True:
                await subscription.wait()
                try:
                    snapshot = await asyncio.to_thread(self._read_local, fetch_local)
                except Exception as e:
                    logger.error("Local %s snapshot failed: %s", self.collection, e)
                    continue
                if snapshot != last:
                    last = snapshot
                    yield snapshot
        finally:
            subscription.close()

    async def lookup(
        self,
        fetch_remote: Callable[[], list[T]],
        fetch_local: Callable[[], Optional[T]],
    ) -> LookupResult[T]:
        """Single-record variant of :meth:`read`.

        A remote miss still consults the local store, which may hold a record
        that was written offline and never reached the remote store.
        """
        status = SyncStatus.OFFLINE
        if await self.is_online():
            try:
                records = await asyncio.to_thread(fetch_remote)
            except Exception as e:
                logger.warning("Remote %s lookup failed, using local store: %s", self.collection, e)
                status = SyncStatus.LOCAL_FALLBACK
            else:
                if records:
                    record = (await asyncio.to_thread(self.resolver.resolve, records))[0]
                    await asyncio.to_thread(self.mirror, [record])
                    return LookupResult(record, SyncStatus.REMOTE)
                status = SyncStatus.LOCAL

        try:
            record = await asyncio.to_thread(fetch_local)
        except Exception as e:
            logger.error("Local %s lookup failed: %s", self.collection, e)
            return LookupResult(None, SyncStatus.FAILED)
        if record is None and status is SyncStatus.LOCAL:
            return LookupResult(None, SyncStatus.REMOTE)
        return LookupResult(record, status)

    async def get(self, key: int) -> LookupResult[T]:
        """By-key lookup: local store first, then a full remote scan."""
        try:
            record = await asyncio.to_thread(self.store.get, key)
        except Exception as e:
            logger.error("Local %s lookup of %d failed: %s", self.collection, key, e)
            record = None
        if record is not None:
            return LookupResult(record, SyncStatus.LOCAL)

        if not await self.is_online():
            return LookupResult(None, SyncStatus.OFFLINE)
        try:
            docs = await asyncio.to_thread(self.remote.query, self.collection)
        except Exception as e:
            logger.warning("Remote %s scan for %d failed: %s", self.collection, key, e)
            return LookupResult(None, SyncStatus.LOCAL_FALLBACK)

        for doc_id, data in docs:
            # Documents written by older clients use the decimal key as their id
            if map_remote_key(doc_id) == key or doc_id == str(key):
                try:
                    record = self.record_type.from_document(data, id=key, remote_id=doc_id)
                except ValueError as e:
                    logger.warning("Skipping malformed %s document %s: %s", self.collection, doc_id, e)
                    continue
                await asyncio.to_thread(self.mirror, [record])
                return LookupResult(record, SyncStatus.REMOTE)
        return LookupResult(None, SyncStatus.REMOTE)

    # -- writes ------------------------------------------------------------

    async def write(self, record: T, matches: Optional[Callable[[T], list[T]]] = None) -> WriteResult:
        """Remote insert when possible, then a local upsert under the derived key.

        ``matches`` overrides :meth:`local_matches` when finding the local copies
        the new row replaces. Local failures propagate; the local write is what
        makes the call succeed.
        """
        status = SyncStatus.OFFLINE
        key = None
        remote_id = None
        if await self.is_online():
            try:
                remote_id = await asyncio.to_thread(self.remote.add, self.collection, record.to_document())
            except Exception as e:
                logger.warning("Remote %s insert failed, keeping it local: %s", self.collection, e)
                status = SyncStatus.LOCAL_FALLBACK
            else:
                key = map_remote_key(remote_id)
                status = SyncStatus.REMOTE
        if key is None:
            key = record.offline_key()

        stored = dataclasses.replace(record, id=key, remote_id=remote_id)
        await asyncio.to_thread(self.store_local, stored, matches)
        logger.debug("Stored %s %d (%s)", self.collection, key, status.value)
        return WriteResult(key, status)

    def store_local(self, record: T, matches: Optional[Callable[[T], list[T]]] = None) -> int:
        """Upsert ``record`` after removing local copies held under other keys (blocking)."""
        find = matches or self.local_matches
        try:
            for other in find(record):
                if other.id != record.id:
                    self.store.delete(other.id)
        except Exception as e:
            logger.warning("Duplicate cleanup before storing %s %d failed: %s", self.collection, record.id, e)
        return self.store.upsert(record)

    def mirror(self, records: list[T]):
        """Copy remote records into the local store; failures are logged, not raised."""
        for record in records:
            try:
                self.store_local(record)
            except Exception as e:
                logger.warning("Mirroring %s %d locally failed: %s", self.collection, record.id, e)
        try:
            self.sweep_local()
        except Exception as e:
            logger.warning("Local duplicate sweep on %s failed: %s", self.collection, e)
