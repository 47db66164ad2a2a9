"""Per-request output models: evaluation results, matches and checklists.

All of these are produced fresh for each request and never persisted.
Scores and confidences are on the [0, 1] scale throughout; the only
[0, 100] value is :attr:`SchemeMatch.score_percent`, derived as
``round(score * 100, 1)`` for presentation layers that need it.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, computed_field

from setu.exceptions import UndeterminedEligibilityError
from setu.models.enums import CriterionKind, CriterionStatus
from setu.models.scheme import Document, Scheme


class CriterionOutcome(BaseModel):
    """The evaluation of a single eligibility rule against a profile."""

    criterion_id: str  # "age", "income", "narrative:0", ...
    kind: CriterionKind
    status: CriterionStatus
    requirement: str  # human-readable statement of the rule
    actual: str | int | float | None = None  # the profile value that was checked
    gap: float | None = None  # distance outside the bound, numeric kinds only
    bound: str | None = None  # "min" or "max" when a numeric bound failed
    threshold: float | None = None  # the violated bound value
    detail: str = ""


class EligibilityResult(BaseModel):
    scheme_id: str | None = None
    is_eligible: bool
    confidence: float = Field(ge=0.0, le=1.0)
    matched_criteria: list[CriterionOutcome] = Field(default_factory=list)
    unmatched_criteria: list[CriterionOutcome] = Field(default_factory=list)
    borderline_criteria: list[CriterionOutcome] = Field(default_factory=list)
    undetermined_criteria: list[CriterionOutcome] = Field(default_factory=list)
    undetermined: bool = False
    timed_out: bool = False
    missing_field: str | None = None  # profile field the criteria needed but did not get

    @classmethod
    def evaluation_timed_out(cls, scheme_id: str) -> EligibilityResult:
        """Result for a scheme whose evaluation did not finish in time."""
        return cls(
            scheme_id=scheme_id,
            is_eligible=False,
            confidence=0.0,
            undetermined=True,
            timed_out=True,
        )

    @classmethod
    def profile_incomplete(
        cls, scheme_id: str, field_name: str, kind: CriterionKind
    ) -> EligibilityResult:
        """Result for a scheme whose criteria need a field the profile lacks."""
        return cls(
            scheme_id=scheme_id,
            is_eligible=False,
            confidence=0.0,
            undetermined_criteria=[
                CriterionOutcome(
                    criterion_id=kind.value,
                    kind=kind,
                    status=CriterionStatus.UNDETERMINED,
                    requirement=f"profile field '{field_name}'",
                    detail=f"{field_name} not provided",
                )
            ],
            undetermined=True,
            missing_field=field_name,
        )

    def criterion_ids(self, status: CriterionStatus) -> list[str]:
        bucket = {
            CriterionStatus.MATCHED: self.matched_criteria,
            CriterionStatus.UNMATCHED: self.unmatched_criteria,
            CriterionStatus.BORDERLINE: self.borderline_criteria,
            CriterionStatus.UNDETERMINED: self.undetermined_criteria,
        }[status]
        return [c.criterion_id for c in bucket]


class SchemeMatch(BaseModel):
    scheme: Scheme
    result: EligibilityResult
    score: float = Field(ge=0.0, le=1.0)
    explanation: str = ""
    deficit: str | None = None  # set only for zero-match alternatives
    is_alternative: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def score_percent(self) -> float:
        return round(self.score * 100, 1)


# ---------------------------------------------------------------------------
# Checklist
# ---------------------------------------------------------------------------


class ChecklistItem(BaseModel):
    document: Document
    likely_missing: bool = False
    substitutes: list[str] = Field(default_factory=list)


class AlternativeGroup(BaseModel):
    """One logical requirement satisfiable by any single option."""

    description: str
    options: list[ChecklistItem]
    is_mandatory: bool = True
    priority: int = 100
    likely_missing: bool = False


class Checklist(BaseModel):
    scheme_id: str
    mandatory: list[ChecklistItem] = Field(default_factory=list)
    optional: list[ChecklistItem] = Field(default_factory=list)
    alternative_groups: list[AlternativeGroup] = Field(default_factory=list)

    def document_ids(self) -> list[str]:
        """Every document id in the checklist, in output order."""
        ids = [item.document.document_id for item in self.mandatory]
        ids.extend(item.document.document_id for item in self.optional)
        for group in self.alternative_groups:
            ids.extend(option.document.document_id for option in group.options)
        return ids


# ---------------------------------------------------------------------------
# Engine report
# ---------------------------------------------------------------------------


class MatchReport(BaseModel):
    """The engine's answer to one matching request."""

    profile_id: str
    catalog_version: str
    matches: list[SchemeMatch] = Field(default_factory=list)
    is_fallback: bool = False
    undetermined_scheme_ids: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def partially_assessed(self) -> bool:
        return bool(self.undetermined_scheme_ids)

    def raise_for_undetermined(self) -> None:
        """Raise :class:`UndeterminedEligibilityError` if any scheme was not fully assessed."""
        if self.undetermined_scheme_ids:
            raise UndeterminedEligibilityError(list(self.undetermined_scheme_ids))
