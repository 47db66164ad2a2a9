"""Deterministic eligibility evaluation of one profile against one scheme.

Architecture:
    * ``EligibilityCriteria`` is expanded into a list of tagged criteria in
      canonical order: age -> gender -> occupation -> income -> region ->
      family size -> narrative.
    * Structured criteria (:class:`StructuredCriterion` subclasses) are
      pure functions of the profile and never perform I/O.
    * Narrative criteria (:class:`NarrativeCriterion`) report
      ``requires_reasoning`` and are resolved through a
      :class:`~setu.services.reasoning.ReasoningGateway`.

Rules:
    * Range checks are inclusive on both ends.
    * Occupation and region values are normalised (case, whitespace,
      hyphens) and mapped through a static synonym table.  Anything that
      does not match after normalisation is unmatched; there is no fuzzy
      guessing.
    * A numeric criterion failing within its kind's relative tolerance is
      *borderline*: it lowers confidence by a fixed penalty but does not
      make the profile ineligible.
    * A narrative rule the collaborator cannot decide is *undetermined*:
      it lowers confidence and flags the result, but is neither a pass
      nor a fail.
    * A profile missing a field that a criterion needs raises
      :class:`~setu.exceptions.ValidationError`.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

import structlog

from setu.exceptions import ValidationError
from setu.models.enums import CriterionKind, CriterionStatus, Gender, NarrativeOutcome
from setu.models.results import CriterionOutcome, EligibilityResult

if TYPE_CHECKING:
    from config.settings import Settings
    from setu.models.scheme import EligibilityCriteria
    from setu.models.user_profile import UserProfile
    from setu.services.reasoning import NarrativeVerdict, ReasoningGateway

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Normalisation tables
# ---------------------------------------------------------------------------

_OCCUPATION_SYNONYMS: Final[dict[str, str]] = {
    "kisan": "farmer",
    "cultivator": "farmer",
    "agriculturist": "farmer",
    "farming": "farmer",
    "daily_wager": "daily_wage_worker",
    "daily_wage_labourer": "daily_wage_worker",
    "daily_wage_laborer": "daily_wage_worker",
    "casual_labourer": "daily_wage_worker",
    "mazdoor": "daily_wage_worker",
    "laborer": "labourer",
    "street_vendor": "vendor",
    "hawker": "vendor",
    "housewife": "homemaker",
    "jobless": "unemployed",
    "craftsman": "artisan",
    "karigar": "artisan",
    "self_employed_person": "self_employed",
}

_REGION_SYNONYMS: Final[dict[str, str]] = {
    "up": "uttar_pradesh",
    "mp": "madhya_pradesh",
    "mh": "maharashtra",
    "tn": "tamil_nadu",
    "wb": "west_bengal",
    "ap": "andhra_pradesh",
    "orissa": "odisha",
    "pondicherry": "puducherry",
    "uttaranchal": "uttarakhand",
    "new_delhi": "delhi",
    "nct_of_delhi": "delhi",
    "jk": "jammu_and_kashmir",
}

# Set members that make an occupation/region constraint vacuous.
_UNIVERSAL_VALUES: Final[frozenset[str]] = frozenset({"any", "all", "india", "all_india", "pan_india"})

_TOKEN_SEPARATORS = re.compile(r"[\s\-/]+")


def normalize_token(value: str) -> str:
    token = _TOKEN_SEPARATORS.sub("_", value.strip().lower().replace("&", " and "))
    return re.sub(r"_+", "_", token).strip("_")


def normalize_occupation(value: str) -> str:
    token = normalize_token(value)
    return _OCCUPATION_SYNONYMS.get(token, token)


def normalize_region(value: str) -> str:
    token = normalize_token(value)
    return _REGION_SYNONYMS.get(token, token)


# ---------------------------------------------------------------------------
# Borderline policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BorderlinePolicy:
    """Tolerance bands and confidence penalties used by the evaluator."""

    tolerances: dict[CriterionKind, float] = field(
        default_factory=lambda: {
            CriterionKind.INCOME: 0.05,
            CriterionKind.AGE: 0.0,
            CriterionKind.FAMILY_SIZE: 0.0,
        }
    )
    borderline_penalty: float = 0.15
    undetermined_penalty: float = 0.25

    @classmethod
    def from_settings(cls, settings: Settings) -> BorderlinePolicy:
        return cls(
            tolerances={
                CriterionKind.INCOME: settings.borderline_income_tolerance,
                CriterionKind.AGE: settings.borderline_age_tolerance,
                CriterionKind.FAMILY_SIZE: settings.borderline_family_size_tolerance,
            },
            borderline_penalty=settings.borderline_penalty,
            undetermined_penalty=settings.undetermined_penalty,
        )

    def tolerance(self, kind: CriterionKind) -> float:
        return self.tolerances.get(kind, 0.0)


# ---------------------------------------------------------------------------
# Criteria (tagged variant)
# ---------------------------------------------------------------------------


class StructuredCriterion(ABC):
    """A criterion decidable from the profile alone."""

    kind: ClassVar[CriterionKind]
    requires_reasoning: ClassVar[bool] = False

    @property
    def criterion_id(self) -> str:
        return self.kind.value

    @abstractmethod
    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome: ...


@dataclass(frozen=True, slots=True)
class _NumericFormat:
    label: str
    unit: str = ""
    money: bool = False

    def fmt(self, value: float) -> str:
        if self.money:
            return f"Rs. {value:,.0f}"
        return f"{value:g}{self.unit}"


def _range_requirement(fmt: _NumericFormat, lower: float | None, upper: float | None) -> str:
    if lower is not None and upper is not None:
        return f"between {fmt.fmt(lower)} and {fmt.fmt(upper)}"
    if lower is not None:
        return f"at least {fmt.fmt(lower)}"
    return f"at most {fmt.fmt(upper)}"  # type: ignore[arg-type]


def _check_range(
    kind: CriterionKind,
    fmt: _NumericFormat,
    value: float,
    lower: float | None,
    upper: float | None,
    tolerance: float,
) -> CriterionOutcome:
    requirement = _range_requirement(fmt, lower, upper)

    if lower is not None and value < lower:
        gap = lower - value
        status = CriterionStatus.BORDERLINE if gap <= lower * tolerance else CriterionStatus.UNMATCHED
        detail = f"{fmt.label} is below the minimum of {fmt.fmt(lower)} by {fmt.fmt(gap)}"
        bound, threshold = "min", lower
    elif upper is not None and value > upper:
        gap = value - upper
        status = CriterionStatus.BORDERLINE if gap <= upper * tolerance else CriterionStatus.UNMATCHED
        detail = f"{fmt.label} exceeds the ceiling of {fmt.fmt(upper)} by {fmt.fmt(gap)}"
        bound, threshold = "max", upper
    else:
        return CriterionOutcome(
            criterion_id=kind.value,
            kind=kind,
            status=CriterionStatus.MATCHED,
            requirement=requirement,
            actual=value,
            gap=0.0,
            detail=f"{fmt.label} of {fmt.fmt(value)} is {requirement}",
        )

    if status is CriterionStatus.BORDERLINE:
        detail += f", within the {tolerance:.0%} tolerance"
    return CriterionOutcome(
        criterion_id=kind.value,
        kind=kind,
        status=status,
        requirement=requirement,
        actual=value,
        gap=gap,
        bound=bound,
        threshold=threshold,
        detail=detail,
    )


def _require(value: object, field_name: str, kind: CriterionKind) -> None:
    if value is None:
        raise ValidationError(
            f"Profile field '{field_name}' is required by the {kind.value} criterion",
            details={"field": field_name, "criterion": kind.value},
        )


@dataclass(frozen=True)
class AgeCriterion(StructuredCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.AGE
    _format: ClassVar[_NumericFormat] = _NumericFormat(label="age", unit=" years")

    min_age: int | None
    max_age: int | None

    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome:
        _require(profile.age, "age", self.kind)
        return _check_range(
            self.kind, self._format, profile.age, self.min_age, self.max_age,  # type: ignore[arg-type]
            policy.tolerance(self.kind),
        )


@dataclass(frozen=True)
class GenderCriterion(StructuredCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.GENDER

    gender: Gender

    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome:
        _require(profile.gender, "gender", self.kind)
        actual = normalize_token(profile.gender)  # type: ignore[arg-type]
        matched = actual == self.gender.value
        return CriterionOutcome(
            criterion_id=self.criterion_id,
            kind=self.kind,
            status=CriterionStatus.MATCHED if matched else CriterionStatus.UNMATCHED,
            requirement=self.gender.value,
            actual=actual,
            detail=(
                f"gender is {actual}"
                if matched
                else f"scheme is restricted to {self.gender.value} applicants"
            ),
        )


@dataclass(frozen=True)
class _SetMembershipCriterion(StructuredCriterion):
    allowed: tuple[str, ...]

    field_name: ClassVar[str]
    label: ClassVar[str]

    @staticmethod
    @abstractmethod
    def normalize(value: str) -> str: ...

    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome:
        raw = getattr(profile, self.field_name)
        _require(raw, self.field_name, self.kind)
        actual = self.normalize(raw)
        requirement = "one of: " + ", ".join(self.allowed)
        matched = actual in self.allowed
        return CriterionOutcome(
            criterion_id=self.criterion_id,
            kind=self.kind,
            status=CriterionStatus.MATCHED if matched else CriterionStatus.UNMATCHED,
            requirement=requirement,
            actual=actual,
            detail=(
                f"{self.label} '{actual}' is eligible"
                if matched
                else f"{self.label} '{actual}' is not {requirement}"
            ),
        )


@dataclass(frozen=True)
class OccupationCriterion(_SetMembershipCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.OCCUPATION
    field_name: ClassVar[str] = "occupation"
    label: ClassVar[str] = "occupation"

    @staticmethod
    def normalize(value: str) -> str:
        return normalize_occupation(value)


@dataclass(frozen=True)
class RegionCriterion(_SetMembershipCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.REGION
    field_name: ClassVar[str] = "state"
    label: ClassVar[str] = "state"

    @staticmethod
    def normalize(value: str) -> str:
        return normalize_region(value)


@dataclass(frozen=True)
class IncomeCriterion(StructuredCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.INCOME
    _format: ClassVar[_NumericFormat] = _NumericFormat(label="income", money=True)

    min_income: float | None
    max_income: float | None

    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome:
        _require(profile.annual_income, "annual_income", self.kind)
        return _check_range(
            self.kind, self._format, profile.annual_income,  # type: ignore[arg-type]
            self.min_income, self.max_income, policy.tolerance(self.kind),
        )


@dataclass(frozen=True)
class FamilySizeCriterion(StructuredCriterion):
    kind: ClassVar[CriterionKind] = CriterionKind.FAMILY_SIZE
    _format: ClassVar[_NumericFormat] = _NumericFormat(label="family size", unit=" members")

    min_family_size: int

    def check(self, profile: UserProfile, policy: BorderlinePolicy) -> CriterionOutcome:
        _require(profile.family_size, "family_size", self.kind)
        return _check_range(
            self.kind, self._format, profile.family_size,  # type: ignore[arg-type]
            self.min_family_size, None, policy.tolerance(self.kind),
        )


@dataclass(frozen=True, slots=True)
class NarrativeCriterion:
    """A free-text rule that only the reasoning collaborator can judge."""

    kind: ClassVar[CriterionKind] = CriterionKind.NARRATIVE
    requires_reasoning: ClassVar[bool] = True

    index: int
    rule: str

    @property
    def criterion_id(self) -> str:
        return f"narrative:{self.index}"

    def outcome_for(self, verdict: NarrativeVerdict) -> CriterionOutcome:
        status = {
            NarrativeOutcome.SUPPORTED: CriterionStatus.MATCHED,
            NarrativeOutcome.UNSUPPORTED: CriterionStatus.UNMATCHED,
            NarrativeOutcome.UNDETERMINED: CriterionStatus.UNDETERMINED,
        }[verdict.outcome]
        return CriterionOutcome(
            criterion_id=self.criterion_id,
            kind=self.kind,
            status=status,
            requirement=self.rule,
            detail=verdict.rationale,
        )


Criterion = StructuredCriterion | NarrativeCriterion


def _normalized_set(values: list[str], normalize) -> tuple[str, ...] | None:
    """Normalise a constraint set; ``None`` when it is empty or universal."""
    normalized = tuple(dict.fromkeys(normalize(v) for v in values if v.strip()))
    if not normalized or any(v in _UNIVERSAL_VALUES for v in normalized):
        return None
    return normalized


def expand_criteria(criteria: EligibilityCriteria) -> list[Criterion]:
    """Expand criteria into tagged variants, in canonical order."""
    expanded: list[Criterion] = []
    if criteria.min_age is not None or criteria.max_age is not None:
        expanded.append(AgeCriterion(criteria.min_age, criteria.max_age))
    if criteria.gender is not Gender.ANY:
        expanded.append(GenderCriterion(criteria.gender))
    occupations = _normalized_set(criteria.occupations, normalize_occupation)
    if occupations:
        expanded.append(OccupationCriterion(occupations))
    if criteria.min_income is not None or criteria.max_income is not None:
        expanded.append(IncomeCriterion(criteria.min_income, criteria.max_income))
    states = _normalized_set(criteria.states, normalize_region)
    if states:
        expanded.append(RegionCriterion(states))
    if criteria.min_family_size is not None:
        expanded.append(FamilySizeCriterion(criteria.min_family_size))
    expanded.extend(
        NarrativeCriterion(index, rule) for index, rule in enumerate(criteria.narrative_rules)
    )
    return expanded


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class CriteriaEvaluator:
    """Evaluates a profile against a scheme's eligibility criteria."""

    __slots__ = ("_policy",)

    def __init__(self, policy: BorderlinePolicy | None = None) -> None:
        self._policy = policy or BorderlinePolicy()

    @property
    def policy(self) -> BorderlinePolicy:
        return self._policy

    def evaluate(
        self,
        profile: UserProfile,
        criteria: EligibilityCriteria,
        *,
        scheme_id: str | None = None,
    ) -> EligibilityResult:
        """Evaluate without consulting the reasoning collaborator.

        Narrative rules, if any, are reported as undetermined.
        """
        expanded = expand_criteria(criteria)
        outcomes = self._check_structured(profile, expanded)
        for criterion in expanded:
            if criterion.requires_reasoning:
                outcomes.append(
                    CriterionOutcome(
                        criterion_id=criterion.criterion_id,
                        kind=criterion.kind,
                        status=CriterionStatus.UNDETERMINED,
                        requirement=criterion.rule,  # type: ignore[union-attr]
                        detail="reasoning service not consulted",
                    )
                )
        return self._finalize(scheme_id, outcomes)

    async def evaluate_async(
        self,
        profile: UserProfile,
        criteria: EligibilityCriteria,
        gateway: ReasoningGateway | None,
        *,
        scheme_id: str | None = None,
    ) -> EligibilityResult:
        """Evaluate, resolving narrative rules through ``gateway``.

        Structured checks run first, so a :class:`ValidationError` is
        raised before any external call is made.
        """
        if gateway is None:
            return self.evaluate(profile, criteria, scheme_id=scheme_id)

        expanded = expand_criteria(criteria)
        outcomes = self._check_structured(profile, expanded)

        narratives = [c for c in expanded if isinstance(c, NarrativeCriterion)]
        if narratives:
            summary = profile.summary()
            verdicts = await asyncio.gather(
                *(gateway.evaluate(summary, c.rule) for c in narratives)
            )
            for criterion, verdict in zip(narratives, verdicts, strict=True):
                if verdict.outcome is NarrativeOutcome.UNDETERMINED:
                    logger.info(
                        "evaluator.narrative_undetermined",
                        scheme_id=scheme_id,
                        criterion_id=criterion.criterion_id,
                        rationale=verdict.rationale,
                    )
                outcomes.append(criterion.outcome_for(verdict))

        return self._finalize(scheme_id, outcomes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_structured(
        self, profile: UserProfile, expanded: list[Criterion]
    ) -> list[CriterionOutcome]:
        return [
            c.check(profile, self._policy)
            for c in expanded
            if isinstance(c, StructuredCriterion)
        ]

    def _finalize(
        self, scheme_id: str | None, outcomes: list[CriterionOutcome]
    ) -> EligibilityResult:
        buckets: dict[CriterionStatus, list[CriterionOutcome]] = {s: [] for s in CriterionStatus}
        for outcome in outcomes:
            buckets[outcome.status].append(outcome)

        borderline = buckets[CriterionStatus.BORDERLINE]
        undetermined = buckets[CriterionStatus.UNDETERMINED]
        confidence = (
            1.0
            - self._policy.borderline_penalty * len(borderline)
            - self._policy.undetermined_penalty * len(undetermined)
        )

        result = EligibilityResult(
            scheme_id=scheme_id,
            is_eligible=not buckets[CriterionStatus.UNMATCHED],
            confidence=round(min(max(confidence, 0.0), 1.0), 4),
            matched_criteria=buckets[CriterionStatus.MATCHED],
            unmatched_criteria=buckets[CriterionStatus.UNMATCHED],
            borderline_criteria=borderline,
            undetermined_criteria=undetermined,
            undetermined=bool(undetermined),
        )
        logger.debug(
            "evaluator.evaluated",
            scheme_id=scheme_id,
            eligible=result.is_eligible,
            confidence=result.confidence,
            matched=len(result.matched_criteria),
            unmatched=len(result.unmatched_criteria),
            borderline=len(borderline),
            undetermined=len(undetermined),
        )
        return result
