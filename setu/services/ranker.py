"""Ranking of evaluated schemes into an ordered list of matches.

Score = confidence x benefit factor, where the benefit factor weights
schemes by their disclosed annual benefit relative to the largest one in
the batch (log-scaled into [0.5, 1]).  Schemes without a numeric benefit
get a neutral factor so they are never silently zero-weighted.

Ordering is total and independent of input order:
score desc -> confidence desc -> scheme priority desc -> scheme id asc.

When nothing is eligible the ranker falls back to the schemes with the
smallest deficit, each carrying a description of what is missing.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Final

import structlog

from setu.models.enums import CriterionKind
from setu.models.results import EligibilityResult, SchemeMatch

if TYPE_CHECKING:
    from config.settings import Settings
    from setu.models.results import CriterionOutcome
    from setu.models.scheme import Scheme
    from setu.models.user_profile import UserProfile

logger = structlog.get_logger(__name__)

_MIN_BENEFIT_FACTOR: Final[float] = 0.5
_CATEGORICAL_DEFICIT: Final[float] = 1.0
_UNASSESSED_DEFICIT_TEXT: Final[str] = "eligibility could not be fully assessed in time"
_MONTHLY_RE: Final[re.Pattern[str]] = re.compile(
    r"\s*(?:per\s+month|/\s*month|a\s+month|monthly)", re.IGNORECASE
)

_NUMERIC_KINDS: Final[frozenset[CriterionKind]] = frozenset({
    CriterionKind.AGE,
    CriterionKind.INCOME,
    CriterionKind.FAMILY_SIZE,
})


class RelevanceRanker:
    """Orders evaluated schemes for one profile.

    Parameters
    ----------
    neutral_benefit_factor:
        Factor applied to schemes that disclose no numeric benefit.
    fallback_size:
        Number of closest alternatives returned when nothing matches.
    """

    __slots__ = ("_fallback_size", "_neutral_benefit_factor")

    def __init__(self, neutral_benefit_factor: float = 0.75, fallback_size: int = 3) -> None:
        self._neutral_benefit_factor = neutral_benefit_factor
        self._fallback_size = fallback_size

    @classmethod
    def from_settings(cls, settings: Settings) -> RelevanceRanker:
        return cls(
            neutral_benefit_factor=settings.neutral_benefit_factor,
            fallback_size=settings.fallback_alternatives,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def rank(
        self,
        profile: UserProfile,
        evaluated: Sequence[tuple[Scheme, EligibilityResult]],
    ) -> list[SchemeMatch]:
        """Return eligible schemes best-first, or the closest alternatives."""
        eligible = [(s, r) for s, r in evaluated if r.is_eligible]
        if not eligible:
            return self._fallback(profile, evaluated)

        amounts = {s.scheme_id: benefit_amount(s) for s, _ in eligible}
        max_amount = max((a for a in amounts.values() if a), default=0.0)

        matches = [
            SchemeMatch(
                scheme=scheme,
                result=result,
                score=round(
                    result.confidence * self._benefit_factor(amounts[scheme.scheme_id], max_amount),
                    6,
                ),
            )
            for scheme, result in eligible
        ]
        matches.sort(
            key=lambda m: (-m.score, -m.result.confidence, -m.scheme.priority, m.scheme.scheme_id)
        )

        logger.info(
            "ranker.ranked",
            profile_id=profile.profile_id,
            evaluated=len(evaluated),
            eligible=len(matches),
        )
        return matches

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _benefit_factor(self, amount: float | None, max_amount: float) -> float:
        if not amount or max_amount <= 0:
            return self._neutral_benefit_factor
        return _MIN_BENEFIT_FACTOR + (1.0 - _MIN_BENEFIT_FACTOR) * (
            math.log1p(amount) / math.log1p(max_amount)
        )

    # ------------------------------------------------------------------
    # Zero-match fallback
    # ------------------------------------------------------------------

    def _fallback(
        self,
        profile: UserProfile,
        evaluated: Sequence[tuple[Scheme, EligibilityResult]],
    ) -> list[SchemeMatch]:
        candidates = sorted(
            evaluated,
            key=lambda pair: (
                deficit_score(pair[1]),
                len(pair[1].unmatched_criteria),
                pair[0].scheme_id,
            ),
        )[: self._fallback_size]

        alternatives = [
            SchemeMatch(
                scheme=scheme,
                result=result,
                score=0.0,
                deficit=describe_deficit(result),
                is_alternative=True,
            )
            for scheme, result in candidates
        ]
        logger.info(
            "ranker.zero_match_fallback",
            profile_id=profile.profile_id,
            evaluated=len(evaluated),
            alternatives=[m.scheme.scheme_id for m in alternatives],
        )
        return alternatives


# ---------------------------------------------------------------------------
# Module-level utilities
# ---------------------------------------------------------------------------


def _criterion_deficit(outcome: CriterionOutcome) -> float:
    if outcome.kind in _NUMERIC_KINDS and outcome.gap is not None and outcome.threshold:
        return outcome.gap / outcome.threshold
    return _CATEGORICAL_DEFICIT


def deficit_score(result: EligibilityResult) -> float:
    """How far a result is from eligibility; 0 for eligible results."""
    if result.is_eligible:
        return 0.0
    if not result.unmatched_criteria:
        return _CATEGORICAL_DEFICIT
    return round(sum(_criterion_deficit(o) for o in result.unmatched_criteria), 6)


def describe_deficit(result: EligibilityResult) -> str:
    """Human-readable list of what is missing; never empty for ineligible results."""
    if result.missing_field and not result.unmatched_criteria:
        return f"{result.missing_field} not provided"
    details = [o.detail for o in result.unmatched_criteria if o.detail]
    if not details:
        details = [
            f"requirement not met: {o.requirement}" for o in result.unmatched_criteria
        ] or [_UNASSESSED_DEFICIT_TEXT]
    return "; ".join(details)


def benefit_amount(scheme: Scheme) -> float | None:
    """The scheme's disclosed annual benefit, declared or parsed from text."""
    if scheme.benefit_amount:
        return scheme.benefit_amount
    return _extract_amount(scheme.benefits)


def _extract_amount(text: str) -> float | None:
    """Extract the first monetary amount from text, annualised.

    An amount followed by "per month", "/month" or "monthly" is multiplied
    by twelve.

    Handles patterns like:
    - Rs. 6,000
    - Rs 2,00,000 (Indian numbering)
    - INR 500000
    - 6000 per year
    """
    if not text:
        return None

    patterns = [
        r"Rs\.?\s*([\d,]+(?:\.\d+)?)",
        r"INR\s*([\d,]+(?:\.\d+)?)",
        r"₹\s*([\d,]+(?:\.\d+)?)",
        r"([\d,]+(?:\.\d+)?)\s*(?:per\s+(?:year|annum|month))",
    ]

    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            amount_str = match.group(1).replace(",", "")
            try:
                amount = float(amount_str)
            except ValueError:
                continue
            if _MONTHLY_RE.match(text, match.end(1)):
                return amount * 12
            return amount

    return None
