"""Scheme-related API endpoints for Bharat-Setu v1.

Provides endpoints for listing schemes in the current catalog snapshot,
fetching a single scheme, and building its document checklist for a
citizen profile.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from setu.models.enums import SchemeCategory
from setu.models.results import Checklist
from setu.models.scheme import Scheme
from setu.models.user_profile import UserProfile

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/schemes", tags=["schemes"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SchemeListResponse(BaseModel):
    """Paginated list of schemes."""

    schemes: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    catalog_version: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=SchemeListResponse)
async def list_schemes(
    request: Request,
    category: str | None = Query(default=None, description="Filter by scheme category"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> SchemeListResponse:
    """List schemes in the current catalog snapshot, optionally by category."""
    catalog = request.app.state.catalog_store.current()

    filtered = list(catalog.schemes)
    if category:
        try:
            cat_enum = SchemeCategory(category)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid category '{category}'. Valid categories: {[c.value for c in SchemeCategory]}",
            ) from None
        filtered = [s for s in filtered if s.category == cat_enum]

    start = (page - 1) * page_size
    schemes_out = [
        {
            "scheme_id": s.scheme_id,
            "name": s.name,
            "category": s.category.value,
            "benefits": s.benefits[:200] if s.benefits else "",
            "benefit_amount": s.benefit_amount,
        }
        for s in filtered[start : start + page_size]
    ]

    return SchemeListResponse(
        schemes=schemes_out,
        total=len(filtered),
        page=page,
        page_size=page_size,
        catalog_version=catalog.version,
    )


@router.get("/{scheme_id}", response_model=Scheme)
async def get_scheme(request: Request, scheme_id: str) -> Scheme:
    """Full definition of one scheme; 404 when it is not in the catalog."""
    return request.app.state.catalog_store.current().get(scheme_id)


@router.post("/{scheme_id}/checklist", response_model=Checklist)
async def build_checklist(request: Request, scheme_id: str, profile: UserProfile) -> Checklist:
    """Build the document checklist for ``scheme_id`` and ``profile``.

    Documents the profile is known not to hold are flagged
    ``likely_missing``; mandatory ones carry substitute suggestions.
    """
    checklist = request.app.state.engine.checklist(scheme_id, profile)
    logger.info(
        "api.schemes.checklist",
        scheme_id=scheme_id,
        profile_id=profile.profile_id,
        documents=len(checklist.document_ids()),
    )
    return checklist
