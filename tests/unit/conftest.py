"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv().
"""

from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.storage.memory import MemoryStorageBackend


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(clock):
    return MemoryStorageBackend(clock=clock)
