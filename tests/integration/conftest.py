"""
Integration test configuration.

Apps are built with create_app() over the memory storage backend; outbound
HTTP (Mailgun, form endpoints) is patched per test.
"""

import pytest

from config import (
    AppSettings,
    MailgunSettings,
    StorageSettings,
    VerificationSettings,
)
from infrastructure.storage.memory import MemoryStorageBackend

PUBLIC_URL = "https://relay.example"


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in integration tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


def make_settings(**verification) -> AppSettings:
    return AppSettings(
        public_url=PUBLIC_URL,
        storage=StorageSettings(storage_backend="memory"),
        mailgun=MailgunSettings(
            mailgun_api_key="key-test",
            mailgun_api_base_url="https://api.mailgun.net/v3/mg.example",
            from_address="forms@relay.example",
        ),
        verification=VerificationSettings(**verification),
    )


@pytest.fixture
def memory_storage():
    return MemoryStorageBackend()


@pytest.fixture
def settings_factory():
    return make_settings
