"""Eligibility matching endpoint for Bharat-Setu v1."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from setu.models.results import MatchReport
from setu.models.user_profile import UserProfile

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


@router.post("/match", response_model=MatchReport)
async def match_profile(
    request: Request,
    profile: UserProfile,
    require_complete: bool = Query(
        default=False,
        description="Fail with 503 instead of returning a partially assessed report",
    ),
) -> MatchReport:
    """Rank the schemes ``profile`` is eligible for, with explanations.

    When nothing matches, the closest alternatives are returned with
    ``is_fallback`` set and a description of what each one is missing.
    """
    report: MatchReport = await request.app.state.engine.match(profile)
    if require_complete:
        report.raise_for_undetermined()
    return report
