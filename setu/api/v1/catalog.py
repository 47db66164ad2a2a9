"""Admin endpoint for reloading the scheme catalog.

The new snapshot is built and validated off to the side and only then
published, so a rejected file never replaces the catalog being served.
"""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from config.settings import settings
from setu.data.seed import load_catalog
from setu.exceptions import CatalogUnavailableError
from setu.middleware.auth import require_admin_api_key

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin/catalog",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)


class CatalogReloadResponse(BaseModel):
    version: str
    previous_version: str | None
    total_schemes: int


@router.post("/reload", response_model=CatalogReloadResponse)
async def reload_catalog(request: Request) -> CatalogReloadResponse:
    """Rebuild the catalog from ``SETU_CATALOG_PATH`` and publish it."""
    try:
        catalog = await asyncio.to_thread(
            load_catalog, settings.catalog_path, version=settings.catalog_version
        )
    except FileNotFoundError as exc:
        raise CatalogUnavailableError(
            "Catalog file not found", details={"path": str(settings.catalog_path)}
        ) from exc

    previous = request.app.state.catalog_store.publish(catalog)
    logger.info(
        "api.catalog.reloaded",
        version=catalog.version,
        previous_version=previous.version if previous else None,
    )
    return CatalogReloadResponse(
        version=catalog.version,
        previous_version=previous.version if previous else None,
        total_schemes=len(catalog),
    )
