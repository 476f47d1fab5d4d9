"""
Single-use verification links that carry the pending submission.

A link id names one stored submission. The lifecycle on the redemption
path is: is_link_valid → get_link_form_data → relay → destroy_link.

Creation is race-free: push_link claims the id with the backend's atomic
``add``. Destruction is not: two redemptions of the same id that overlap can
both read the payload before either deletes it. Across replicated backends
a fresh link may also be briefly invisible, which callers see as
LinkIDNotFoundError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import (
    InvalidFormFieldError,
    LinkIDInUseError,
    LinkIDNotFoundError,
    PayloadTooLargeError,
)
from infrastructure.storage.protocol import Partition, StorageBackend
from schemas.models.link import LinkRecord
from shared.form_codec import FieldValue, FormFields, decode_form, encode_form
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LinkStore:
    def __init__(
        self,
        storage: StorageBackend,
        max_payload_bytes: Optional[int] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self._max_payload_bytes = max_payload_bytes
        self._clock = clock

    @staticmethod
    def generate_token_id() -> str:
        """Return a fresh 256-bit URL-safe link id."""
        return generate_secure_token()

    async def _record(self, link_id: str) -> Optional[LinkRecord]:
        raw = await self._storage.get(Partition.LINKS, link_id)
        if raw is None:
            return None
        try:
            record = LinkRecord.model_validate_json(raw)
        except PydanticValidationError:
            raise InvalidFormFieldError("*", "stored link record is corrupted")
        if record.is_expired(self._clock()):
            return None
        return record

    async def push_link(
        self,
        link_id: str,
        fields: Mapping[str, FieldValue],
        expires_at: Optional[datetime] = None,
    ) -> None:
        """Store *fields* under *link_id*.

        Raises:
            LinkIDInUseError: a live link already uses *link_id*.
            PayloadTooLargeError: the encoded submission exceeds the limit.
        """
        record = LinkRecord(
            form_data=encode_form(fields),
            created_at=self._clock(),
            expires_at=expires_at,
        )
        raw = record.model_dump_json()

        if self._max_payload_bytes is not None:
            size = len(raw.encode("utf-8"))
            if size > self._max_payload_bytes:
                log.info(
                    "link_payload_too_large",
                    size=size,
                    limit=self._max_payload_bytes,
                )
                raise PayloadTooLargeError(
                    "Entity too large",
                    details={"size": size, "limit": self._max_payload_bytes},
                )

        added = await self._storage.add(
            Partition.LINKS, link_id, raw, expires_at=record.expires_at
        )
        if not added:
            log.error("link_id_collision")
            raise LinkIDInUseError(link_id)

    async def provision_link(
        self,
        fields: Mapping[str, FieldValue],
        expires_at: Optional[datetime] = None,
    ) -> str:
        """Generate an id, store *fields* under it and return the id."""
        link_id = self.generate_token_id()
        await self.push_link(link_id, fields, expires_at)
        log.info(
            "link_provisioned",
            field_count=len(fields),
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        return link_id

    async def is_link_valid(self, link_id: str) -> bool:
        raw = await self._storage.get(Partition.LINKS, link_id)
        if raw is None:
            return False
        try:
            record = LinkRecord.model_validate_json(raw)
        except PydanticValidationError:
            # Present but unreadable; get_link_form_data reports the corruption.
            return True
        return not record.is_expired(self._clock())

    async def get_link_form_data(self, link_id: str) -> FormFields:
        """Return the submission stored under *link_id*.

        Raises:
            LinkIDNotFoundError: no live link uses *link_id*.
            InvalidFormFieldError: the stored payload cannot be decoded.
        """
        record = await self._record(link_id)
        if record is None:
            raise LinkIDNotFoundError(link_id)
        return decode_form(record.form_data)

    async def destroy_link(self, link_id: str) -> None:
        """Delete the link.

        Raises:
            LinkIDNotFoundError: no link uses *link_id*.
        """
        raw = await self._storage.get(Partition.LINKS, link_id)
        if raw is None:
            raise LinkIDNotFoundError(link_id)
        await self._storage.delete(Partition.LINKS, link_id)
        log.info("link_destroyed")
