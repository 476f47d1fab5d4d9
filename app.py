"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.mailgun import MailgunEmailProvider
from infrastructure.form_relay import FormRelay
from infrastructure.http_client import HttpClient
from infrastructure.storage.factory import create_storage_backend
from infrastructure.storage.protocol import StorageBackend
from routes.health_routes import router as health_router
from routes.verify_routes import router as verify_router
from services.email_composer import EmailComposer
from services.email_timeouts import EmailTimeoutGuard
from services.form_registry import FormRegistry
from services.link_store import LinkStore
from services.signed_links import SignedLinkSigner
from services.verification_service import VerificationService
from shared.logging import setup_logging


def build_verification_service(
    settings: AppSettings,
    storage: StorageBackend,
    http_client: HttpClient,
) -> VerificationService:
    """Wire the verification service from its parts."""
    verification = settings.verification
    signer = (
        SignedLinkSigner(verification.secret_signature)
        if verification.secret_signature
        else None
    )
    return VerificationService(
        settings=verification,
        forms=FormRegistry(storage),
        timeouts=EmailTimeoutGuard(storage),
        links=LinkStore(storage, max_payload_bytes=verification.max_payload_bytes),
        signer=signer,
        composer=EmailComposer(settings.mailgun),
        email_provider=MailgunEmailProvider(http_client),
        relay=FormRelay(http_client),
    )


def create_app(
    settings: Optional[AppSettings] = None,
    storage: Optional[StorageBackend] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    Passing *storage* skips backend construction (tests use this with the
    memory backend).
    """
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format=settings.logging.log_format,
        env=settings.env,
        sentry_dsn=settings.sentry.sentry_dsn,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        close_storage = None
        backend = storage
        if backend is None:
            backend, close_storage = await create_storage_backend(settings.storage)

        http_client = HttpClient(timeout=settings.mailgun.http_timeout_seconds)

        app.state.settings = settings
        app.state.storage = backend
        app.state.verification_service = build_verification_service(
            settings, backend, http_client
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        if close_storage is not None:
            await close_storage()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(verify_router)

    return app
