"""EmailProvider protocol: services depend on this, not the concrete implementation."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class EmailCredentials:
    api_key: str
    api_base_url: str


@dataclass(frozen=True)
class EmailMessage:
    from_address: str
    to: str
    subject: str
    text: str
    html: str


class EmailProvider(Protocol):
    async def send(self, creds: EmailCredentials, message: EmailMessage) -> int:
        """Send *message*; return the provider's HTTP status code."""
        ...
