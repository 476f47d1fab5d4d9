"""Builds the verification email for a form.

Subject and bodies come from the form reference when set (with ``$LINK$``
replaced by the redemption URL), otherwise from the Jinja2 templates in
templates/emails/.
"""

from __future__ import annotations

import os

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import MailgunSettings
from errors import ConfigurationError
from infrastructure.email.protocol import EmailCredentials, EmailMessage
from schemas.models.form import LINK_PLACEHOLDER, FormReference

DEFAULT_SUBJECT = "Verify email to submit form"

_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "templates", "emails"
)


class EmailComposer:
    def __init__(
        self,
        settings: MailgunSettings,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def credentials_for(self, form: FormReference) -> EmailCredentials:
        override = form.mailgun_creds
        api_key = override.api_key if override and override.api_key else None
        base_url = override.api_base_url if override and override.api_base_url else None
        creds = EmailCredentials(
            api_key=api_key or self._settings.mailgun_api_key,
            api_base_url=base_url or self._settings.mailgun_api_base_url,
        )
        if not creds.api_key or not creds.api_base_url:
            raise ConfigurationError("Email sending is not configured for this form")
        return creds

    def compose(self, form: FormReference, to: str, link: str) -> EmailMessage:
        from_address = form.from_address or self._settings.from_address
        if not from_address:
            raise ConfigurationError("Email sending is not configured for this form")

        if form.msg_text:
            text = form.msg_text.replace(LINK_PLACEHOLDER, link)
        else:
            text = self._jinja.get_template("verification.txt").render(link=link)

        if form.msg_html:
            html = form.msg_html.replace(LINK_PLACEHOLDER, link)
        else:
            html = self._jinja.get_template("verification.html").render(link=link)

        return EmailMessage(
            from_address=from_address,
            to=to,
            subject=form.subject or DEFAULT_SUBJECT,
            text=text,
            html=html,
        )
