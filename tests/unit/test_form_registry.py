"""Unit tests for FormReference validation and the FormRegistry."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from errors import FormNotFoundError, ValidationError
from infrastructure.storage.protocol import Partition
from schemas.models.form import FormReference
from services.form_registry import FormRegistry


# ── FormReference ─────────────────────────────────────────────────────────────


class TestFormReference:
    def test_minimal(self):
        form = FormReference(form_url="https://example.com/submit")
        assert form.email_field_name is None
        assert form.verify_redirect is None
        assert form.submit_redirect is None

    def test_full(self):
        form = FormReference.model_validate(
            {
                "form_url": "https://example.com/submit",
                "email_field_name": "email",
                "redirects": {
                    "verify": "https://example.com/check-inbox",
                    "submit": "https://example.com/thanks",
                },
                "mailgun_creds": {
                    "api_key": "key-1",
                    "api_base_url": "https://api.mailgun.net/v3/mg.example.com",
                },
                "from_address": "Example Forms <forms@example.com>",
                "subject": "Confirm",
                "msg_text": "Go: $LINK$",
                "msg_html": "<a href='$LINK$'>go</a>",
            }
        )
        assert form.verify_redirect == "https://example.com/check-inbox"
        assert form.submit_redirect == "https://example.com/thanks"
        assert form.mailgun_creds.api_key == "key-1"

    def test_form_url_required(self):
        with pytest.raises(PydanticValidationError):
            FormReference.model_validate({})

    @pytest.mark.parametrize(
        "payload",
        [
            {"form_url": "not a url"},
            {"form_url": "https://x.test", "redirects": {"verify": "relative/path"}},
            {"form_url": "https://x.test", "redirects": {"elsewhere": "https://y.test"}},
            {"form_url": "https://x.test", "mailgun_creds": {"api_base_url": "nope"}},
            {"form_url": "https://x.test", "mailgun_creds": {"domain": "x"}},
            {"form_url": "https://x.test", "from_address": "not-an-address"},
            {"form_url": "https://x.test", "unknown": True},
        ],
        ids=[
            "bad_form_url",
            "relative_redirect",
            "unknown_redirect_name",
            "bad_api_base_url",
            "unknown_cred_name",
            "bad_from_address",
            "unknown_key",
        ],
    )
    def test_rejects_invalid(self, payload):
        with pytest.raises(PydanticValidationError):
            FormReference.model_validate(payload)

    @pytest.mark.parametrize(
        "address", ["forms@example.com", "Example Forms <forms@example.com>"]
    )
    def test_accepts_from_address_formats(self, address):
        form = FormReference(form_url="https://x.test", from_address=address)
        assert form.from_address == address


# ── FormRegistry ──────────────────────────────────────────────────────────────


class TestFormRegistry:
    async def test_get_missing_raises(self, storage):
        with pytest.raises(FormNotFoundError) as exc:
            await FormRegistry(storage).get_form("contact")
        assert exc.value.key == "contact"

    async def test_push_then_get(self, storage):
        registry = FormRegistry(storage)
        form = FormReference(
            form_url="https://example.com/submit", email_field_name="email"
        )
        await registry.push_form("contact", form)
        assert await registry.get_form("contact") == form

    async def test_push_is_last_write_wins(self, storage):
        registry = FormRegistry(storage)
        await registry.push_form("contact", FormReference(form_url="https://a.test"))
        await registry.push_form("contact", FormReference(form_url="https://b.test"))
        assert (await registry.get_form("contact")).form_url == "https://b.test"

    async def test_push_omits_unset_fields(self, storage):
        await FormRegistry(storage).push_form(
            "contact", FormReference(form_url="https://a.test")
        )
        raw = await storage.get(Partition.FORMS, "contact")
        assert json.loads(raw) == {"form_url": "https://a.test"}

    async def test_invalid_stored_document_raises_validation(self, storage):
        await storage.put(Partition.FORMS, "broken", '{"email_field_name": "e"}')
        with pytest.raises(ValidationError):
            await FormRegistry(storage).get_form("broken")
