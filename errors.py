"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. Each kind (validation, not found,
conflict, rate limit, upstream) maps to one HTTP status; the domain errors
raised by the storage-facing services subclass those kinds and carry the
offending key in ``details`` so callers can log them. Secrets never go in
an error message.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class PayloadTooLargeError(AppError):
    status_code = 413
    error_code = "payload_too_large"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class ConfigurationError(AppError):
    """The deployment or form reference lacks a required setting."""

    status_code = 500
    error_code = "misconfigured"


class UpstreamError(AppError):
    """An outbound collaborator (email API, form endpoint) answered non-200."""

    status_code = 502
    error_code = "upstream_error"


# ── Domain errors ─────────────────────────────────────────────────────────────


class FormNotFoundError(NotFoundError):
    error_code = "form_not_found"

    def __init__(self, key: str) -> None:
        super().__init__("Form key invalid", field="FormKey", details={"key": key})
        self.key = key


class LinkIDNotFoundError(NotFoundError):
    error_code = "link_not_found"

    def __init__(self, link_id: str) -> None:
        super().__init__(
            "Link ID invalid. Either this link is malformed, has already been "
            "used, or hasn't been propagated yet. Try again shortly."
        )
        # The id is a bearer secret until destroyed; keep it off the response.
        self.link_id = link_id


class EmailTimeoutShorterThanCurrentError(ConflictError):
    error_code = "timeout_shorter_than_current"

    def __init__(self, email: str) -> None:
        super().__init__("Email timeout shorter than current")
        self.email = email


class LinkIDInUseError(ConflictError):
    error_code = "link_id_in_use"

    def __init__(self, link_id: str) -> None:
        super().__init__("Link ID in use")
        self.link_id = link_id


class InvalidFormFieldError(ValidationError):
    error_code = "invalid_form_field"

    def __init__(self, field_name: str, reason: str = "unknown field marker") -> None:
        super().__init__(
            f"Invalid form field: {field_name}",
            field=field_name,
            details={"reason": reason},
        )
        self.field_name = field_name


class SignatureMismatchError(ValidationError):
    error_code = "invalid_signature"

    def __init__(self) -> None:
        super().__init__("Invalid signature")


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error(
                "request_failed",
                path=request.url.path,
                error_code=exc.error_code,
                details=exc.details,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
