"""Unit tests for the infrastructure layer (HTTP client, Mailgun, form relay)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from infrastructure.email.mailgun import MailgunEmailProvider
from infrastructure.email.protocol import EmailCredentials, EmailMessage
from infrastructure.form_relay import FormRelay
from infrastructure.http_client import USER_AGENT, HttpClient
from shared.form_codec import FormBlob


def _message(**overrides) -> EmailMessage:
    base = dict(
        from_address="Forms <forms@relay.example>",
        to="a@b.com",
        subject="Verify email to submit form",
        text="click https://relay.example/submit-form?link_id=x",
        html="<a href='https://relay.example/submit-form?link_id=x'>click</a>",
    )
    base.update(overrides)
    return EmailMessage(**base)


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("http://example.com", data={"a": "1"})
        assert resp.status_code == 200
        client._client.post.assert_called_once_with(
            "http://example.com", data={"a": "1"}
        )
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=Exception("timeout"))
        with pytest.raises(Exception, match="timeout"):
            await client.post("http://example.com")
        await client.aclose()

    async def test_does_not_follow_redirects(self):
        async with HttpClient() as client:
            assert client._client.follow_redirects is False
            assert client._client.headers["User-Agent"] == USER_AGENT

    async def test_timeout_applied(self):
        async with HttpClient(timeout=3.5) as client:
            assert client._client.timeout.read == 3.5


# ── MailgunEmailProvider ──────────────────────────────────────────────────────


class TestMailgunEmailProvider:
    def _make(self, status=200):
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=status, text="body"))
        return MailgunEmailProvider(http), http

    async def test_posts_to_messages_endpoint(self):
        provider, http = self._make()
        creds = EmailCredentials(
            api_key="key-123", api_base_url="https://api.mailgun.net/v3/mg.example/"
        )
        status = await provider.send(creds, _message())
        assert status == 200
        args, kwargs = http.post.call_args
        assert args[0] == "https://api.mailgun.net/v3/mg.example/messages"
        assert kwargs["auth"] == ("api", "key-123")

    async def test_sends_message_fields(self):
        provider, http = self._make()
        creds = EmailCredentials(api_key="k", api_base_url="https://mg.test/v3/d")
        await provider.send(creds, _message(subject="Hi"))
        data = http.post.call_args.kwargs["data"]
        assert data["from"] == "Forms <forms@relay.example>"
        assert data["to"] == "a@b.com"
        assert data["subject"] == "Hi"
        assert "link_id=x" in data["text"]
        assert "link_id=x" in data["html"]

    async def test_returns_non_200_status(self):
        provider, _ = self._make(status=401)
        creds = EmailCredentials(api_key="bad", api_base_url="https://mg.test/v3/d")
        assert await provider.send(creds, _message()) == 401


# ── FormRelay ─────────────────────────────────────────────────────────────────


class TestFormRelay:
    def _make(self, status=200):
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=status, text=""))
        return FormRelay(http), http

    async def test_text_fields_sent_as_form_body(self):
        relay, http = self._make()
        status = await relay.submit("https://example.com/f", {"a": "1", "b": "2"})
        assert status == 200
        args, kwargs = http.post.call_args
        assert args[0] == "https://example.com/f"
        assert kwargs == {"data": {"a": "1", "b": "2"}}

    async def test_blobs_sent_as_file_parts(self):
        relay, http = self._make()
        await relay.submit(
            "https://example.com/f",
            {
                "note": "hi",
                "pic": FormBlob(b"\x89PNG", "image/png", "pic.png"),
                "raw": FormBlob(b"\x00"),
            },
        )
        kwargs = http.post.call_args.kwargs
        assert kwargs["data"] == {"note": "hi"}
        assert kwargs["files"]["pic"] == ("pic.png", b"\x89PNG", "image/png")
        assert kwargs["files"]["raw"] == ("raw", b"\x00", "application/octet-stream")

    async def test_returns_endpoint_status(self):
        relay, _ = self._make(status=302)
        assert await relay.submit("https://example.com/f", {"a": "1"}) == 302
