"""Tests for the per-request eligibility engine.

Uses the bundled central_schemes.json catalog via load_catalog().
"""

from __future__ import annotations

import asyncio

import pytest

from setu.data.seed import load_catalog
from setu.exceptions import (
    CatalogUnavailableError,
    SchemeNotFoundError,
    UndeterminedEligibilityError,
    ValidationError,
)
from setu.models.enums import NarrativeOutcome
from setu.models.user_profile import UserProfile
from setu.services.catalog import CatalogStore, SchemeCatalog
from setu.services.engine import EligibilityEngine
from setu.services.reasoning import NarrativeVerdict, ReasoningGateway


class SupportingReasoner:
    async def evaluate_narrative_rule(
        self, profile_summary: str, rule_text: str, timeout: float
    ) -> NarrativeVerdict:
        return NarrativeVerdict(outcome=NarrativeOutcome.SUPPORTED, rationale="verified")


class StalledReasoner:
    async def evaluate_narrative_rule(
        self, profile_summary: str, rule_text: str, timeout: float
    ) -> NarrativeVerdict:
        await asyncio.sleep(5)
        return NarrativeVerdict(outcome=NarrativeOutcome.SUPPORTED)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def catalog() -> SchemeCatalog:
    return load_catalog(version="test-v1")


@pytest.fixture
def store(catalog: SchemeCatalog) -> CatalogStore:
    return CatalogStore(catalog)


@pytest.fixture
def engine(store: CatalogStore) -> EligibilityEngine:
    return EligibilityEngine(store)


@pytest.fixture
def farmer() -> UserProfile:
    """A 45-year-old male farmer in Uttar Pradesh earning Rs 60k."""
    return UserProfile(
        profile_id="farmer-1",
        age=45,
        gender="male",
        state="Uttar Pradesh",
        occupation="farmer",
        annual_income=60000.0,
        family_size=5,
        has_aadhaar=True,
    )


@pytest.fixture
def ineligible_student() -> UserProfile:
    """Matches nothing in the bundled catalog."""
    return UserProfile(
        profile_id="student-1",
        age=10,
        gender="male",
        state="Kerala",
        occupation="student",
        annual_income=900000.0,
        family_size=1,
    )


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


class TestMatch:
    async def test_farmer_matches(self, engine: EligibilityEngine, farmer: UserProfile) -> None:
        report = await engine.match(farmer)

        ids = [m.scheme.scheme_id for m in report.matches]
        assert set(ids) == {"pmjay", "mgnrega", "pm-kisan", "pmay-g"}
        assert ids[:2] == ["pmjay", "mgnrega"], "Full-confidence, high-benefit schemes lead"
        assert report.is_fallback is False
        assert report.catalog_version == "test-v1"
        assert report.profile_id == "farmer-1"

    async def test_scores_are_non_increasing(
        self, engine: EligibilityEngine, farmer: UserProfile
    ) -> None:
        report = await engine.match(farmer)
        scores = [m.score for m in report.matches]
        assert scores == sorted(scores, reverse=True)

    async def test_no_false_positives(self, engine: EligibilityEngine, farmer: UserProfile) -> None:
        report = await engine.match(farmer)
        assert all(m.result.is_eligible for m in report.matches)

    async def test_every_match_is_explained(
        self, engine: EligibilityEngine, farmer: UserProfile
    ) -> None:
        report = await engine.match(farmer)
        for match in report.matches:
            assert match.explanation.startswith(
                f"You are likely eligible for {match.scheme.name}."
            )

    async def test_narrative_schemes_are_partially_assessed(
        self, engine: EligibilityEngine, farmer: UserProfile
    ) -> None:
        report = await engine.match(farmer)
        assert report.partially_assessed is True
        assert report.undetermined_scheme_ids == ["pm-kisan", "pmay-g"]
        with pytest.raises(UndeterminedEligibilityError):
            report.raise_for_undetermined()

    async def test_reasoner_resolves_narrative_rules(
        self, store: CatalogStore, farmer: UserProfile
    ) -> None:
        engine = EligibilityEngine(store, ReasoningGateway(SupportingReasoner()))
        report = await engine.match(farmer)
        assert report.partially_assessed is False
        kisan = next(m for m in report.matches if m.scheme.scheme_id == "pm-kisan")
        assert kisan.result.confidence == 1.0

    async def test_repeated_calls_are_identical(
        self, engine: EligibilityEngine, farmer: UserProfile
    ) -> None:
        first = await engine.match(farmer)
        second = await engine.match(farmer)
        assert [m.model_dump() for m in first.matches] == [m.model_dump() for m in second.matches]

    async def test_missing_field_only_affects_schemes_that_need_it(
        self, engine: EligibilityEngine, farmer: UserProfile
    ) -> None:
        no_gender = farmer.model_copy(update={"gender": None})
        report = await engine.match(no_gender)

        ids = {m.scheme.scheme_id for m in report.matches}
        assert ids == {"pmjay", "mgnrega", "pm-kisan", "pmay-g"}, "Other schemes still match"
        assert report.undetermined_scheme_ids == ["pm-kisan", "pmay-g", "mh-ladki-bahin"]
        assert report.partially_assessed is True

    async def test_missing_field_is_recorded_on_the_result(
        self, store: CatalogStore, farmer: UserProfile
    ) -> None:
        catalog = store.current()
        subset = SchemeCatalog.build(
            [catalog.get("mh-ladki-bahin"), catalog.get("pmjay")], version="subset"
        )
        engine = EligibilityEngine(CatalogStore(subset))
        no_gender = farmer.model_copy(update={"gender": None, "annual_income": 900000.0})

        report = await engine.match(no_gender)

        assert report.is_fallback is True
        ladki = next(m for m in report.matches if m.scheme.scheme_id == "mh-ladki-bahin")
        assert ladki.result.is_eligible is False
        assert ladki.result.missing_field == "gender"
        assert ladki.deficit == "gender not provided"

    async def test_field_missing_for_every_scheme_is_rejected(
        self, engine: EligibilityEngine
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await engine.match(UserProfile(occupation="farmer"))
        assert "age" in exc_info.value.details["fields"]


class TestFallback:
    async def test_zero_match_returns_alternatives(
        self, engine: EligibilityEngine, ineligible_student: UserProfile
    ) -> None:
        report = await engine.match(ineligible_student)
        assert report.is_fallback is True
        assert report.matches, "Zero-match fallback must never be empty"
        for match in report.matches:
            assert match.is_alternative is True
            assert match.deficit
            assert match.explanation.startswith("You could become eligible for")


class TestTimeouts:
    async def test_slow_schemes_time_out_without_failing_the_request(
        self, store: CatalogStore, farmer: UserProfile
    ) -> None:
        gateway = ReasoningGateway(StalledReasoner(), timeout=10.0, max_attempts=1)
        engine = EligibilityEngine(store, gateway, evaluation_timeout=0.05)

        report = await engine.match(farmer)

        ids = [m.scheme.scheme_id for m in report.matches]
        assert "pm-kisan" not in ids, "A timed-out scheme is never reported as eligible"
        assert "pmay-g" not in ids
        assert {"pmjay", "mgnrega"} <= set(ids)
        assert report.undetermined_scheme_ids == ["pm-kisan", "pmay-g"]


class TestCatalogState:
    async def test_unpublished_catalog_is_unavailable(self, farmer: UserProfile) -> None:
        with pytest.raises(CatalogUnavailableError):
            await EligibilityEngine(CatalogStore()).match(farmer)

    async def test_empty_catalog_is_unavailable(self, farmer: UserProfile) -> None:
        store = CatalogStore(SchemeCatalog.build([], version="empty"))
        with pytest.raises(CatalogUnavailableError):
            await EligibilityEngine(store).match(farmer)

    async def test_published_snapshot_is_used_by_later_requests(
        self, store: CatalogStore, catalog: SchemeCatalog, farmer: UserProfile
    ) -> None:
        engine = EligibilityEngine(store)
        store.publish(SchemeCatalog.build([catalog.get("pmjay")], version="test-v2"))
        report = await engine.match(farmer)
        assert report.catalog_version == "test-v2"
        assert [m.scheme.scheme_id for m in report.matches] == ["pmjay"]


class TestChecklist:
    def test_checklist_for_known_scheme(self, engine: EligibilityEngine, farmer: UserProfile) -> None:
        checklist = engine.checklist("pmjay", farmer)
        assert checklist.scheme_id == "pmjay"
        assert len(checklist.alternative_groups) == 1

    def test_unknown_scheme_propagates(self, engine: EligibilityEngine, farmer: UserProfile) -> None:
        with pytest.raises(SchemeNotFoundError):
            engine.checklist("does-not-exist", farmer)
