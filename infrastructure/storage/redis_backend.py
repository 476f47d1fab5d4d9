"""Redis storage backend.

Each partition is a key prefix: ``<partition>:<key>``. Expiry maps to
``PXAT`` so Redis reclaims entries itself; ``add`` is a single
``SET NX`` and therefore atomic.
"""

from datetime import datetime
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from infrastructure.storage.protocol import Partition
from shared.logging import get_logger

log = get_logger(__name__)


def _pxat(expires_at: Optional[datetime]) -> Optional[int]:
    if expires_at is None:
        return None
    return int(expires_at.timestamp() * 1000)


class RedisStorageBackend:
    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    def _key(self, partition: Partition, key: str) -> str:
        return f"{Partition(partition).value}:{key}"

    async def get(self, partition: Partition, key: str) -> Optional[str]:
        return await self._redis.get(self._key(partition, key))

    async def put(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> None:
        await self._redis.set(
            self._key(partition, key), value, pxat=_pxat(expires_at)
        )

    async def add(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        result = await self._redis.set(
            self._key(partition, key), value, nx=True, pxat=_pxat(expires_at)
        )
        return result is not None and bool(result)

    async def delete(self, partition: Partition, key: str) -> None:
        await self._redis.delete(self._key(partition, key))

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            log.warning("redis_ping_failed", error=str(e), error_type=type(e).__name__)
            return False

    async def aclose(self) -> None:
        await self._redis.aclose()
