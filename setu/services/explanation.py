"""Template-bound explanation text for scheme matches.

Explanations are assembled only from the evaluator's ``matched_criteria``
through a fixed phrase per criterion kind, in canonical order.  Nothing
is generated freely, so every sentence can be traced back to a matched
criterion by the downstream fact-checking layer.  Text is produced in
English; translation is the presentation layer's job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from setu.models.enums import CriterionKind

if TYPE_CHECKING:
    from setu.models.results import CriterionOutcome, EligibilityResult, SchemeMatch
    from setu.models.scheme import Scheme
    from setu.models.user_profile import UserProfile

LOCAL_AUTHORITY_DISCLAIMER: Final[str] = (
    "Some conditions could not be fully confirmed, so please confirm your "
    "eligibility with your local authority office before applying."
)

_MATCH_HEADER: Final[str] = "You are likely eligible for {scheme}."

_MATCHED_TEMPLATES: Final[dict[CriterionKind, str]] = {
    CriterionKind.AGE: "Your age ({actual}) meets the requirement of {requirement}.",
    CriterionKind.GENDER: "You meet the requirement that applicants be {requirement}.",
    CriterionKind.OCCUPATION: "Your occupation ({actual}) is one of the eligible occupations.",
    CriterionKind.INCOME: "Your annual income of {actual} is within the limit of {requirement}.",
    CriterionKind.REGION: "The scheme is available in your state ({actual}).",
    CriterionKind.FAMILY_SIZE: "Your family size of {actual} meets the requirement of {requirement}.",
    CriterionKind.NARRATIVE: "You meet the condition: {requirement}.",
}

_ALTERNATIVE_SENTENCE: Final[str] = "You could become eligible for {scheme} if {conditions}."

_REMEDY_TEMPLATES: Final[dict[CriterionKind, str]] = {
    CriterionKind.AGE: "your age were {requirement}",
    CriterionKind.GENDER: "the applicant were {requirement}",
    CriterionKind.OCCUPATION: "your occupation were {requirement}",
    CriterionKind.INCOME: "your annual income were {requirement}",
    CriterionKind.REGION: "your state of residence were {requirement}",
    CriterionKind.FAMILY_SIZE: "your family size were {requirement}",
    CriterionKind.NARRATIVE: "the condition '{requirement}' applied to you",
}

_UNASSESSED_REMEDY: Final[str] = "its remaining conditions were confirmed with your local authority office"

_KIND_ORDER: Final[dict[CriterionKind, int]] = {kind: i for i, kind in enumerate(CriterionKind)}


def _canonical_key(outcome: CriterionOutcome) -> tuple[int, int]:
    _, _, suffix = outcome.criterion_id.partition(":")
    return _KIND_ORDER[outcome.kind], int(suffix) if suffix.isdigit() else 0


def _format_actual(outcome: CriterionOutcome) -> str:
    if outcome.kind is CriterionKind.INCOME and isinstance(outcome.actual, int | float):
        return f"Rs. {outcome.actual:,.0f}"
    if isinstance(outcome.actual, float) and outcome.actual.is_integer():
        return str(int(outcome.actual))
    return str(outcome.actual)


class ExplanationGenerator:
    """Renders matches and alternatives through fixed templates."""

    def explain(self, profile: UserProfile, scheme: Scheme, result: EligibilityResult) -> str:
        """Explain why ``profile`` matches ``scheme`` using matched criteria only."""
        sentences = [_MATCH_HEADER.format(scheme=scheme.name)]
        for outcome in sorted(result.matched_criteria, key=_canonical_key):
            sentences.append(
                _MATCHED_TEMPLATES[outcome.kind].format(
                    actual=_format_actual(outcome),
                    requirement=outcome.requirement,
                )
            )
        if result.borderline_criteria or result.undetermined:
            sentences.append(LOCAL_AUTHORITY_DISCLAIMER)
        return " ".join(sentences)

    def explain_alternative(
        self, profile: UserProfile, scheme: Scheme, result: EligibilityResult
    ) -> str:
        """Explain what would have to change for ``profile`` to qualify."""
        conditions = [
            f"{_REMEDY_TEMPLATES[o.kind].format(requirement=o.requirement)} ({o.detail})"
            if o.detail
            else _REMEDY_TEMPLATES[o.kind].format(requirement=o.requirement)
            for o in sorted(result.unmatched_criteria, key=_canonical_key)
        ] or [_UNASSESSED_REMEDY]

        sentences = [
            _ALTERNATIVE_SENTENCE.format(scheme=scheme.name, conditions=" and ".join(conditions))
        ]
        if result.undetermined:
            sentences.append(LOCAL_AUTHORITY_DISCLAIMER)
        return " ".join(sentences)

    def explain_match(self, profile: UserProfile, match: SchemeMatch) -> str:
        if match.is_alternative:
            return self.explain_alternative(profile, match.scheme, match.result)
        return self.explain(profile, match.scheme, match.result)
