from setu.models.enums import (
    CriterionKind,
    CriterionStatus,
    DocumentType,
    Gender,
    LanguageCode,
    NarrativeOutcome,
    SchemeCategory,
)
from setu.models.results import (
    AlternativeGroup,
    Checklist,
    ChecklistItem,
    CriterionOutcome,
    EligibilityResult,
    MatchReport,
    SchemeMatch,
)
from setu.models.scheme import ApplicationStep, Document, EligibilityCriteria, Scheme
from setu.models.user_profile import UserProfile

__all__ = [
    "AlternativeGroup",
    "ApplicationStep",
    "Checklist",
    "ChecklistItem",
    "CriterionKind",
    "CriterionOutcome",
    "CriterionStatus",
    "Document",
    "DocumentType",
    "EligibilityCriteria",
    "EligibilityResult",
    "Gender",
    "LanguageCode",
    "MatchReport",
    "NarrativeOutcome",
    "Scheme",
    "SchemeCategory",
    "SchemeMatch",
    "UserProfile",
]
