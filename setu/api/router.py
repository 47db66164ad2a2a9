"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Health: liveness plus the published catalog version
    * Schemes: catalog listing, detail and document checklists
    * Eligibility: profile matching
    * Admin: catalog reload
"""

from __future__ import annotations

from fastapi import APIRouter

from setu.api.v1 import catalog, eligibility, health, schemes

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health.router)
api_router.include_router(schemes.router)
api_router.include_router(eligibility.router)
api_router.include_router(catalog.router)
