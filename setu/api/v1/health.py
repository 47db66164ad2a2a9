"""Health check endpoint for the Bharat-Setu API v1.

The probe reports the catalog snapshot currently being served so a
deployment can confirm that a reload took effect.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    catalog_version: str | None
    total_schemes: int
    reasoning_configured: bool


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns ``healthy`` when a non-empty catalog snapshot is published and
    ``degraded`` otherwise.  Never fails: matching requests are the ones
    that surface catalog errors.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    store = getattr(request.app.state, "catalog_store", None)
    gateway = getattr(request.app.state, "reasoning_gateway", None)

    catalog = store.current() if store is not None and store.is_ready else None
    total = len(catalog) if catalog is not None else 0

    return HealthResponse(
        status="healthy" if total else "degraded",
        version=request.app.version,
        uptime_seconds=round(time.time() - start_time, 2),
        catalog_version=catalog.version if catalog is not None else None,
        total_schemes=total,
        reasoning_configured=gateway is not None and gateway.is_available,
    )
