"""
FastAPI dependency providers.

Components are built once in the app lifespan and parked on app.state;
these providers hand them to route handlers via Depends().
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.storage.protocol import StorageBackend
from services.verification_service import VerificationService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_storage(request: Request) -> StorageBackend:
    """Return the configured storage backend from app.state."""
    return request.app.state.storage


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification_service
