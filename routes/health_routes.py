"""
Health check endpoint.

GET /health: pings the storage backend.
Storage unreachable → "unhealthy" (503); the relay cannot issue or redeem
links without it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config import AppSettings
from dependencies import get_settings, get_storage
from infrastructure.storage.protocol import StorageBackend

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    settings: AppSettings = Depends(get_settings),
    storage: StorageBackend = Depends(get_storage),
) -> JSONResponse:
    backend = settings.storage.storage_backend

    try:
        ok = await storage.ping()
    except Exception:
        ok = False

    overall = "healthy" if ok else "unhealthy"
    return JSONResponse(
        status_code=200 if ok else 503,
        content={"status": overall, "checks": {backend: "ok" if ok else "error"}},
    )
