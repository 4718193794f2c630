"""Duplicate detection and local cleanup.

Local and remote writes are not atomic with respect to each other, so the same
logical record can end up stored under more than one local key: once under a
key derived from the remote document id, once under an offline key, or twice
because the remote store returned two documents for it. The resolver collapses
such groups to one deterministic representative and deletes the other keys
from the local store.
"""

import logging
from typing import Callable, Generic, Hashable, Iterable, Optional, TypeVar

logger = logging.getLogger("job_board.sync.dedup")

T = TypeVar("T")


def representative_rank(record) -> tuple:
    """Sort key for picking the record that survives a duplicate group.

    An assigned key beats an unassigned one, a key that came from a remote
    document beats a locally derived one, then the lowest key wins.
    """
    return (record.id == 0, record.remote_id is None, record.id)


class DuplicateResolver(Generic[T]):
    def __init__(
        self,
        business_key: Callable[[T], Hashable],
        timestamp: Optional[Callable[[T], int]] = None,
        window_ms: int = 0,
        delete_local: Optional[Callable[[int], object]] = None,
    ):
        self.business_key = business_key
        self.timestamp = timestamp
        self.window_ms = window_ms
        self.delete_local = delete_local

    def resolve(self, records: Iterable[T]) -> list[T]:
        """Return one record per logical identity, in first-seen order.

        Non-representative keys are deleted locally unless a survivor holds
        the same key. Running it again on its own output is a no-op.
        """
        records = list(records)
        survivors = [min(group, key=representative_rank) for group in self._groups(records)]

        # Pass 2: two groups can still map to one storage key
        unique: list[T] = []
        seen_keys = set()
        for record in survivors:
            if record.id != 0:
                if record.id in seen_keys:
                    continue
                seen_keys.add(record.id)
            unique.append(record)

        kept = {r.id for r in unique}
        stale = []
        for record in records:
            if record.id != 0 and record.id not in kept and record.id not in stale:
                stale.append(record.id)
        self._delete(stale)
        return unique

    def _groups(self, records: list[T]) -> list[list[T]]:
        by_key: dict = {}
        for record in records:
            by_key.setdefault(self.business_key(record), []).append(record)

        if self.timestamp is None or self.window_ms <= 0:
            return list(by_key.values())

        groups = []
        for members in by_key.values():
            # Split into clusters; a record joins the current cluster while it
            # stays within the window of the cluster's first record
            ordered = sorted(members, key=self.timestamp)
            cluster = [ordered[0]]
            for record in ordered[1:]:
                if self.timestamp(record) - self.timestamp(cluster[0]) < self.window_ms:
                    cluster.append(record)
                else:
                    groups.append(cluster)
                    cluster = [record]
            groups.append(cluster)

        # Restore first-seen order of the representatives' groups
        position = {id(r): i for i, r in enumerate(records)}
        groups.sort(key=lambda g: min(position[id(r)] for r in g))
        return groups

    def _delete(self, keys: list[int]):
        if not keys or self.delete_local is None:
            return
        for key in keys:
            try:
                self.delete_local(key)
            except Exception as e:
                logger.warning("Duplicate cleanup failed for key %d: %s", key, e)
        logger.info("Removed %d duplicate row(s)", len(keys))
