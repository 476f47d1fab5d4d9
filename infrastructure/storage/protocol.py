"""StorageBackend protocol: the services depend on this, not a concrete store.

A backend is a partitioned string key-value store with optional absolute
expiry. An entry whose expiry has passed must read as absent even if the
backend has not reclaimed it yet.

None of these operations are transactional with respect to each other.
Sequences like "get, then put" race against concurrent callers; ``add`` is
the one conditional write and must be atomic in every backend.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, runtime_checkable


class Partition(str, Enum):
    FORMS = "forms"
    TIMEOUTS = "timeouts"
    LINKS = "links"


@runtime_checkable
class StorageBackend(Protocol):
    async def get(self, partition: Partition, key: str) -> Optional[str]: ...

    async def put(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> None: ...

    async def add(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> bool: ...

    async def delete(self, partition: Partition, key: str) -> None: ...

    async def ping(self) -> bool: ...
