"""In-process storage backend.

Suitable for tests and single-instance deployments; contents are lost on
restart and are not shared between worker processes.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from infrastructure.storage.protocol import Partition

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStorageBackend:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._data: dict[tuple[str, str], tuple[str, Optional[datetime]]] = {}
        self._lock = asyncio.Lock()

    def _live(self, slot: str, key: str) -> Optional[str]:
        entry = self._data.get((slot, key))
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[(slot, key)]
            return None
        return value

    async def get(self, partition: Partition, key: str) -> Optional[str]:
        return self._live(Partition(partition).value, key)

    async def put(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> None:
        self._data[(Partition(partition).value, key)] = (value, expires_at)

    async def add(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        slot = Partition(partition).value
        async with self._lock:
            if self._live(slot, key) is not None:
                return False
            self._data[(slot, key)] = (value, expires_at)
            return True

    async def delete(self, partition: Partition, key: str) -> None:
        self._data.pop((Partition(partition).value, key), None)

    async def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Drop every entry. Useful for testing."""
        self._data.clear()
