"""Results that say which store served an operation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SyncStatus(str, Enum):
    REMOTE = "remote"  # remote call succeeded (and was mirrored locally)
    LOCAL = "local"  # answered by the local store; remote not needed
    LOCAL_FALLBACK = "local_fallback"  # remote attempted, failed; served locally
    OFFLINE = "offline"  # gate closed; remote never attempted
    FAILED = "failed"  # local read failed as well; result is empty

    @property
    def degraded(self) -> bool:
        return self in (SyncStatus.LOCAL_FALLBACK, SyncStatus.OFFLINE, SyncStatus.FAILED)


@dataclass
class ReadResult(Generic[T]):
    records: list[T] = field(default_factory=list)
    status: SyncStatus = SyncStatus.OFFLINE

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass
class LookupResult(Generic[T]):
    record: Optional[T] = None
    status: SyncStatus = SyncStatus.OFFLINE

    @property
    def found(self) -> bool:
        return self.record is not None


@dataclass
class WriteResult:
    key: int
    status: SyncStatus
    duplicate: bool = False  # an equivalent record was already stored
