"""
Verify-then-relay orchestration.

request_verification: FormKey → form reference → email address → timeout
check → provision (or sign) a link → send the verification email → lock the
address for PENDING_TIMEOUT_SECONDS.

redeem_link / redeem_signed: validate the link → read the submission →
resolve the form → POST to form_url. For stored links the caller destroys the
link afterwards (see discard_link); a failed relay keeps the link so the
submitter can retry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import urlencode

from config import VerificationSettings
from errors import (
    EmailTimeoutShorterThanCurrentError,
    LinkIDNotFoundError,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from infrastructure.form_relay import FormRelay
from schemas.models.form import FormReference
from schemas.models.timeout import EmailTimeoutReason
from services.email_composer import EmailComposer
from services.email_timeouts import EmailTimeoutGuard
from services.form_registry import FormRegistry
from services.link_store import LinkStore
from services.signed_links import SignedLinkSigner, SignedPayload
from shared.form_codec import FormBlob, FormFields
from shared.logging import get_logger

log = get_logger(__name__)

FORM_KEY_FIELD = "FormKey"
EMAIL_FIELD_NAME_FIELD = "EmailFieldName"
VERIFY_REDIRECT_FIELD = "VerifyRedirectTo"
SUBMIT_REDIRECT_FIELD = "SubmitRedirectTo"

# Stripped before the submission reaches the real form endpoint
RELAY_ONLY_FIELDS = (EMAIL_FIELD_NAME_FIELD, FORM_KEY_FIELD, SUBMIT_REDIRECT_FIELD)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VerificationResult:
    redirect_url: Optional[str]


@dataclass(frozen=True)
class RedemptionResult:
    redirect_url: Optional[str]


def _text_field(fields: FormFields, name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    value = fields.get(name)
    if isinstance(value, FormBlob):
        return None
    return value or None


class VerificationService:
    def __init__(
        self,
        settings: VerificationSettings,
        forms: FormRegistry,
        timeouts: EmailTimeoutGuard,
        links: LinkStore,
        signer: Optional[SignedLinkSigner],
        composer: EmailComposer,
        email_provider: EmailProvider,
        relay: FormRelay,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._forms = forms
        self._timeouts = timeouts
        self._links = links
        self._signer = signer
        self._composer = composer
        self._email = email_provider
        self._form_relay = relay
        self._clock = clock

    @property
    def link_mode(self) -> str:
        return self._settings.link_mode

    # ── shared resolution ────────────────────────────────────────────────

    async def _resolve_form(self, fields: FormFields) -> tuple[str, FormReference]:
        form_key = _text_field(fields, FORM_KEY_FIELD)
        if not form_key:
            raise ValidationError("No form key specified", field=FORM_KEY_FIELD)
        return form_key, await self._forms.get_form(form_key)

    @staticmethod
    def _resolve_email(form: FormReference, fields: FormFields) -> str:
        field_name = form.email_field_name or _text_field(
            fields, EMAIL_FIELD_NAME_FIELD
        )
        if not field_name:
            raise ValidationError(
                "No email field name specified", field=EMAIL_FIELD_NAME_FIELD
            )
        to = _text_field(fields, field_name)
        if not to:
            raise ValidationError("No email address specified", field=field_name)
        return to

    def _link_expiry(self) -> Optional[datetime]:
        if self._settings.link_ttl_seconds is None:
            return None
        return self._clock() + timedelta(seconds=self._settings.link_ttl_seconds)

    def _submit_url(self, base_url: str, params: dict[str, str]) -> str:
        return f"{base_url.rstrip('/')}{self._settings.submit_path}?{urlencode(params)}"

    # ── verify-email path ────────────────────────────────────────────────

    async def request_verification(
        self, fields: FormFields, base_url: str
    ) -> VerificationResult:
        fields = dict(fields)
        form_key, form = await self._resolve_form(fields)
        to = self._resolve_email(form, fields)

        if await self._timeouts.is_email_timed_out(to):
            log.info("verification_rate_limited", form_key=form_key)
            raise RateLimitError(
                "This email address has requested verification too recently. "
                "Please try again later."
            )

        redirect_url = form.verify_redirect or _text_field(
            fields, VERIFY_REDIRECT_FIELD
        )
        fields.pop(VERIFY_REDIRECT_FIELD, None)

        if self._settings.link_mode == "signed":
            payload = self._signer.seal(fields, form.form_url)
            link = self._submit_url(
                base_url, {"data": payload.data, "signature": payload.signature}
            )
        else:
            link_id = await self._links.provision_link(fields, self._link_expiry())
            link = self._submit_url(base_url, {"link_id": link_id})

        creds = self._composer.credentials_for(form)
        message = self._composer.compose(form, to, link)
        status = await self._email.send(creds, message)
        if status != 200:
            raise UpstreamError(
                "Failed to send email", details={"status_code": status}
            )

        if self._settings.pending_timeout_seconds > 0:
            try:
                await self._timeouts.timeout_email(
                    to,
                    self._settings.pending_timeout_seconds,
                    EmailTimeoutReason.PENDING_VERIFICATION,
                )
            except EmailTimeoutShorterThanCurrentError:
                # A longer timeout landed between the check above and now;
                # it stays in force.
                log.info("pending_timeout_superseded", form_key=form_key)

        log.info("verification_email_sent", form_key=form_key, mode=self.link_mode)
        return VerificationResult(redirect_url=redirect_url)

    # ── submit-form path ─────────────────────────────────────────────────

    async def _relay(self, form: FormReference, fields: FormFields) -> RedemptionResult:
        self._resolve_email(form, fields)
        redirect_url = form.submit_redirect or _text_field(
            fields, SUBMIT_REDIRECT_FIELD
        )
        outgoing = {k: v for k, v in fields.items() if k not in RELAY_ONLY_FIELDS}

        status = await self._form_relay.submit(form.form_url, outgoing)
        if status != 200:
            raise UpstreamError(
                "Failed to submit form", details={"status_code": status}
            )
        return RedemptionResult(redirect_url=redirect_url)

    async def redeem_link(self, link_id: str) -> RedemptionResult:
        if not await self._links.is_link_valid(link_id):
            log.info("link_invalid")
            raise LinkIDNotFoundError(link_id)

        fields = await self._links.get_link_form_data(link_id)
        form_key, form = await self._resolve_form(fields)
        result = await self._relay(form, fields)
        log.info("form_submitted", form_key=form_key, mode="stored")
        return result

    async def discard_link(self, link_id: str) -> None:
        """Destroy a redeemed link; failures are logged, not raised.

        Runs after the response has been sent. A lost delete is tolerable
        because the link still lapses via its TTL, if it has one.
        """
        try:
            await self._links.destroy_link(link_id)
        except LinkIDNotFoundError:
            log.info("link_already_destroyed")
        except Exception as e:
            log.error(
                "link_destroy_failed", error=str(e), error_type=type(e).__name__
            )

    async def redeem_signed(self, data: str, signature: str) -> RedemptionResult:
        if self._signer is None:
            raise ValidationError("Signed links are not enabled")
        payload = SignedPayload(data=data, signature=signature)
        claimed = self._signer.peek(payload)
        form_key, form = await self._resolve_form(claimed)
        fields = self._signer.open(payload, form.form_url)
        result = await self._relay(form, fields)
        log.info("form_submitted", form_key=form_key, mode="signed")
        return result
