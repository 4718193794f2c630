"""Remote document store interface and an in-process implementation.

The remote store is a schemaless collection of documents addressed by opaque
server-assigned ids. Repositories only rely on the operations below; any
failure surfaces as an exception for them to catch.
"""

import threading
import uuid
from dataclasses import dataclass
from typing import Any, Optional

PREFIX_END = "\uf8ff"

OPERATORS = ("==", "<", "<=", ">", ">=")


class RemoteStoreError(Exception):
    """A remote store call failed (network, HTTP status or malformed response)."""


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class Order:
    field: str
    descending: bool = False


def equals(field: str, value: Any) -> Filter:
    return Filter(field, "==", value)


def prefix(field: str, value: str) -> list[Filter]:
    """Range filters matching strings that start with ``value``."""
    return [Filter(field, ">=", value), Filter(field, "<=", value + PREFIX_END)]


Document = tuple[str, dict]


class DocumentStore:
    """Operations the reconciliation layer needs from the remote store."""

    def add(self, collection: str, data: dict) -> str:
        """Create a document with a generated id and return the id."""
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def query(
        self,
        collection: str,
        filters: Optional[list[Filter]] = None,
        order_by: Optional[list[Order]] = None,
        limit: Optional[int] = None,
    ) -> list[Document]:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: dict):
        """Replace a document's contents."""
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict):
        """Change only ``fields`` of an existing document."""
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str):
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """Thread-safe in-process document store with the same query semantics."""

    def __init__(self):
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, dict]] = {}

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = dict(data)
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return dict(data) if data is not None else None

    def query(self, collection, filters=None, order_by=None, limit=None) -> list[Document]:
        with self._lock:
            docs = [(doc_id, dict(data)) for doc_id, data in self._collections.get(collection, {}).items()]

        for f in filters or []:
            docs = [d for d in docs if _matches(d[1].get(f.field), f)]

        # Stable sorts applied from the least significant order key
        for order in reversed(order_by or []):
            docs = [d for d in docs if d[1].get(order.field) is not None]
            docs.sort(key=lambda d: d[1][order.field], reverse=order.descending)

        if limit is not None:
            docs = docs[:limit]
        return docs

    def set(self, collection: str, doc_id: str, data: dict):
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = dict(data)

    def update(self, collection: str, doc_id: str, fields: dict):
        with self._lock:
            docs = self._collections.get(collection, {})
            if doc_id not in docs:
                raise RemoteStoreError(f"No document {collection}/{doc_id}")
            docs[doc_id].update(fields)

    def delete(self, collection: str, doc_id: str):
        with self._lock:
            self._collections.get(collection, {}).pop(doc_id, None)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))


def _matches(actual: Any, f: Filter) -> bool:
    if actual is None:
        return f.op == "==" and f.value is None
    try:
        if f.op == "==":
            return actual == f.value
        if f.op == "<":
            return actual < f.value
        if f.op == "<=":
            return actual <= f.value
        if f.op == ">":
            return actual > f.value
        return actual >= f.value
    except TypeError:
        # Mixed types never match, as in Firestore
        return False
