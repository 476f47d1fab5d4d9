"""Build the configured StorageBackend.

Returns the backend plus an async close callback so the app lifespan can
release connections on shutdown.
"""

from typing import Awaitable, Callable

import redis.asyncio as aioredis
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import StorageSettings
from infrastructure.storage.memory import MemoryStorageBackend
from infrastructure.storage.mongo_backend import MongoStorageBackend
from infrastructure.storage.protocol import StorageBackend
from infrastructure.storage.redis_backend import RedisStorageBackend
from shared.logging import get_logger

log = get_logger(__name__)

Closer = Callable[[], Awaitable[None]]


async def _noop() -> None:
    return None


async def create_storage_backend(
    settings: StorageSettings,
) -> tuple[StorageBackend, Closer]:
    """Connect to the backend named by ``STORAGE_BACKEND``."""
    if settings.storage_backend == "memory":
        log.info("storage_backend_selected", backend="memory")
        return MemoryStorageBackend(), _noop

    if settings.storage_backend == "redis":
        client: aioredis.Redis = aioredis.from_url(
            settings.redis_uri, decode_responses=True
        )
        await client.ping()
        log.info(
            "storage_backend_selected",
            backend="redis",
            uri=settings.redis_uri.split("@")[-1],  # mask credentials
        )
        return RedisStorageBackend(client), client.aclose

    mongo_client: AsyncMongoClient = AsyncMongoClient(
        settings.mongodb_uri, tz_aware=True
    )
    backend = MongoStorageBackend(mongo_client[settings.db_name])
    await backend.ensure_indexes()
    log.info("storage_backend_selected", backend="mongo", db_name=settings.db_name)
    return backend, mongo_client.close
