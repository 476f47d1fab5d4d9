"""
Email timeout record.

Stored in the ``timeouts`` partition keyed by normalised email address.
At most one record per address; ``expires`` may only ever move later.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, field_validator


class EmailTimeoutReason(str, Enum):
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    BANNED = "BANNED"


class EmailTimeout(BaseModel):
    reason: EmailTimeoutReason
    expires: datetime

    @field_validator("expires")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
