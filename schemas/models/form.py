"""
Form reference model.

Stored in the ``forms`` partition keyed by an opaque form key. Created by an
administrator (see manage_forms.py), read-only on the request path.

Every field except ``form_url`` is optional and resolves through the chain
reference → submitted payload → environment → built-in default.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, TypeAdapter, field_validator

LINK_PLACEHOLDER = "$LINK$"

# user@domain.tld or Name <user@domain.tld>
_BARE_ADDRESS_RE = re.compile(r"^[^\s<>@]+@[^\s<>@]+$")
_NAMED_ADDRESS_RE = re.compile(r"^[^<]+<[^@<>\s]+@[^@<>\s]+>$")

_http_url = TypeAdapter(AnyHttpUrl)


def _check_url(value: str) -> str:
    _http_url.validate_python(value)
    return value


class FormRedirects(BaseModel):
    model_config = ConfigDict(extra="forbid")

    verify: Optional[str] = None
    submit: Optional[str] = None

    @field_validator("verify", "submit")
    @classmethod
    def _absolute_url(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_url(v)


class MailgunCreds(BaseModel):
    """Per-form Mailgun credential override.

    Storing credentials here is discouraged; prefer a separate deployment
    with its own environment when a form needs a different sending domain.
    """

    model_config = ConfigDict(extra="forbid")

    api_key: Optional[str] = None
    api_base_url: Optional[str] = None

    @field_validator("api_base_url")
    @classmethod
    def _absolute_url(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_url(v)


class FormReference(BaseModel):
    model_config = ConfigDict(extra="forbid")

    form_url: str
    email_field_name: Optional[str] = None
    redirects: Optional[FormRedirects] = None
    mailgun_creds: Optional[MailgunCreds] = None
    from_address: Optional[str] = None
    subject: Optional[str] = None
    msg_text: Optional[str] = None  # $LINK$ is replaced with the redemption URL
    msg_html: Optional[str] = None  # $LINK$ is replaced with the redemption URL

    @field_validator("form_url")
    @classmethod
    def _form_url_absolute(cls, v: str) -> str:
        return _check_url(v)

    @field_validator("from_address")
    @classmethod
    def _from_address_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not (_BARE_ADDRESS_RE.match(v) or _NAMED_ADDRESS_RE.match(v)):
            raise ValueError("from_address must be user@domain or Name <user@domain>")
        return v

    @property
    def verify_redirect(self) -> Optional[str]:
        return self.redirects.verify if self.redirects else None

    @property
    def submit_redirect(self) -> Optional[str]:
        return self.redirects.submit if self.redirects else None
