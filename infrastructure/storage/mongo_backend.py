"""MongoDB storage backend.

One collection per partition, one document per key:

    {"_id": <key>, "value": <str>, "expires_at": <datetime | None>}

A TTL index on ``expires_at`` lets MongoDB reclaim expired entries, but the
TTL monitor only runs about once a minute, so reads also filter on
``expires_at`` themselves. ``add`` relies on the unique ``_id`` index: an
insert either wins or raises DuplicateKeyError.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from infrastructure.storage.protocol import Partition
from shared.logging import get_logger

log = get_logger(__name__)


def _live_filter(key: str, now: datetime) -> dict[str, Any]:
    return {
        "_id": key,
        "$or": [{"expires_at": None}, {"expires_at": {"$gt": now}}],
    }


class MongoStorageBackend:
    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db

    def _collection(self, partition: Partition):
        return self._db[Partition(partition).value]

    async def ensure_indexes(self) -> None:
        for partition in Partition:
            await self._collection(partition).create_index(
                [("expires_at", ASCENDING)], expireAfterSeconds=0
            )

    async def get(self, partition: Partition, key: str) -> Optional[str]:
        now = datetime.now(timezone.utc)
        doc = await self._collection(partition).find_one(_live_filter(key, now))
        if doc is None:
            return None
        return doc["value"]

    async def put(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> None:
        await self._collection(partition).replace_one(
            {"_id": key},
            {"_id": key, "value": value, "expires_at": expires_at},
            upsert=True,
        )

    async def add(
        self,
        partition: Partition,
        key: str,
        value: str,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        collection = self._collection(partition)
        now = datetime.now(timezone.utc)
        # An expired document the TTL monitor has not reached yet still
        # holds the _id; clear it so the insert below can claim the key.
        await collection.delete_one({"_id": key, "expires_at": {"$lte": now}})
        try:
            await collection.insert_one(
                {"_id": key, "value": value, "expires_at": expires_at}
            )
        except DuplicateKeyError:
            return False
        return True

    async def delete(self, partition: Partition, key: str) -> None:
        await self._collection(partition).delete_one({"_id": key})

    async def ping(self) -> bool:
        try:
            await self._db.client.admin.command("ping")
            return True
        except PyMongoError as e:
            log.warning("mongo_ping_failed", error=str(e), error_type=type(e).__name__)
            return False
