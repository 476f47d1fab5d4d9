"""
Pending submission record.

Stored in the ``links`` partition keyed by the link id. ``form_data`` is the
smart form JSON produced by shared.form_codec; ``expires_at`` of None means
the link never expires.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class LinkRecord(BaseModel):
    form_data: dict[str, Any]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None

    @field_validator("created_at", "expires_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now
