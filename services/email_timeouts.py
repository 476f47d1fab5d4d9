"""
Per-address rate limiting for verification emails.

A timeout record only ever extends: pushing one that ends before the stored
record raises EmailTimeoutShorterThanCurrentError and leaves storage alone.

The read and the write in push_email_timeout are separate storage calls.
Two requests racing on the same address can both pass the check, and the
later write wins even if it is the shorter timeout.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from errors import EmailTimeoutShorterThanCurrentError
from infrastructure.storage.protocol import Partition, StorageBackend
from schemas.models.timeout import EmailTimeout, EmailTimeoutReason
from shared.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EmailTimeoutGuard:
    def __init__(self, storage: StorageBackend, clock: Clock = utc_now) -> None:
        self._storage = storage
        self._clock = clock

    async def _current(self, key: str) -> Optional[EmailTimeout]:
        raw = await self._storage.get(Partition.TIMEOUTS, key)
        if raw is None:
            return None
        try:
            return EmailTimeout.model_validate_json(raw)
        except PydanticValidationError:
            # Unreadable record; treat the address as free and let the next
            # push overwrite it.
            log.warning("email_timeout_record_invalid")
            return None

    async def push_email_timeout(self, email: str, timeout: EmailTimeout) -> None:
        """Store *timeout* for *email* unless a longer one is already active."""
        key = normalize_email(email)
        current = await self._current(key)
        if current is not None and current.expires > timeout.expires:
            log.warning(
                "email_timeout_shorter_than_current",
                reason=timeout.reason.value,
                current_reason=current.reason.value,
            )
            raise EmailTimeoutShorterThanCurrentError(email)

        # No backend expiry: a lapsed record must still block an earlier one.
        await self._storage.put(Partition.TIMEOUTS, key, timeout.model_dump_json())

    async def is_email_timed_out(self, email: str) -> bool:
        current = await self._current(normalize_email(email))
        if current is None:
            return False
        return current.expires > self._clock()

    async def timeout_email(
        self,
        email: str,
        duration: Union[timedelta, int, float],
        reason: EmailTimeoutReason,
    ) -> EmailTimeout:
        """Time *email* out for *duration* (seconds or timedelta) from now."""
        if not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)
        timeout = EmailTimeout(reason=reason, expires=self._clock() + duration)
        await self.push_email_timeout(email, timeout)
        return timeout
