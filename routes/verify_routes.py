"""
Verification endpoints.

POST /verify-email  accept a form submission, email a redemption link
GET  /submit-form   redeem the link and relay the submission

Both answer with a 302 to the resolved redirect target when one exists,
otherwise with a short plain-text confirmation.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from starlette.datastructures import FormData

from config import AppSettings
from dependencies import get_settings, get_verification_service
from errors import ValidationError
from services.verification_service import VerificationService
from shared.form_codec import fields_from_form
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["verification"])

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _respond(redirect_url: Optional[str], message: str) -> Response:
    if redirect_url:
        return RedirectResponse(redirect_url, status_code=302)
    return PlainTextResponse(message, status_code=200)


def _public_base_url(request: Request, settings: AppSettings) -> str:
    if settings.public_url:
        return settings.public_url
    return str(request.base_url)


async def _read_form(request: Request) -> FormData:
    content_type = request.headers.get("content-type", "").lower()
    if not content_type.startswith(_FORM_CONTENT_TYPES):
        raise ValidationError("Invalid content type")
    try:
        return await request.form()
    except Exception as e:
        # python-multipart raises a handful of unrelated types on bad bodies
        log.info("form_parse_failed", error_type=type(e).__name__)
        raise ValidationError("Invalid form data")


@router.post("/verify-email")
async def verify_email(
    request: Request,
    settings: AppSettings = Depends(get_settings),
    service: VerificationService = Depends(get_verification_service),
) -> Response:
    form = await _read_form(request)
    fields = await fields_from_form(form)
    if not fields:
        raise ValidationError("No form data")

    result = await service.request_verification(
        fields, _public_base_url(request, settings)
    )
    return _respond(
        result.redirect_url,
        "Form ready to submit. Please check your emails for a verification "
        "link to submit the form.",
    )


@router.get("/submit-form")
async def submit_form(
    request: Request,
    background_tasks: BackgroundTasks,
    service: VerificationService = Depends(get_verification_service),
) -> Response:
    params = request.query_params

    if service.link_mode == "signed":
        data = params.get("data")
        if not data:
            raise ValidationError("No form data specified", field="data")
        signature = params.get("signature")
        if not signature:
            raise ValidationError("No signature specified", field="signature")
        result = await service.redeem_signed(data, signature)
    else:
        link_id = params.get("link_id")
        if not link_id:
            raise ValidationError("No link ID specified", field="link_id")
        result = await service.redeem_link(link_id)
        background_tasks.add_task(service.discard_link, link_id)

    return _respond(result.redirect_url, "Form submitted")
