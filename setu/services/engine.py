"""Per-request orchestration of eligibility matching.

For one profile the engine takes the current catalog snapshot, evaluates
every scheme concurrently (each evaluation under its own timeout), ranks
the results, attaches template-bound explanations and reports which
schemes could not be fully assessed.  The snapshot reference is taken
once at the start of a request, so a catalog swap mid-request never
mixes two versions.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from setu.exceptions import CatalogUnavailableError, ValidationError
from setu.models.enums import CriterionKind
from setu.models.results import EligibilityResult, MatchReport
from setu.services.checklist import ChecklistBuilder
from setu.services.evaluator import BorderlinePolicy, CriteriaEvaluator
from setu.services.explanation import ExplanationGenerator
from setu.services.ranker import RelevanceRanker

if TYPE_CHECKING:
    from config.settings import Settings
    from setu.models.results import Checklist
    from setu.models.scheme import Scheme
    from setu.models.user_profile import UserProfile
    from setu.services.catalog import CatalogStore
    from setu.services.reasoning import ReasoningGateway

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class EligibilityEngine:
    """Matches profiles against the published scheme catalog.

    Parameters
    ----------
    store:
        Holder of the current :class:`~setu.services.catalog.SchemeCatalog`.
    gateway:
        Reasoning gateway used for narrative rules, or ``None`` to leave
        narrative rules undetermined.
    evaluator, ranker, explainer, checklist_builder:
        Collaborators; defaults are constructed when omitted.
    evaluation_timeout:
        Seconds allowed for evaluating a single scheme.
    """

    def __init__(
        self,
        store: CatalogStore,
        gateway: ReasoningGateway | None = None,
        *,
        evaluator: CriteriaEvaluator | None = None,
        ranker: RelevanceRanker | None = None,
        explainer: ExplanationGenerator | None = None,
        checklist_builder: ChecklistBuilder | None = None,
        evaluation_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._evaluator = evaluator or CriteriaEvaluator()
        self._ranker = ranker or RelevanceRanker()
        self._explainer = explainer or ExplanationGenerator()
        self._checklist_builder = checklist_builder or ChecklistBuilder(store)
        self._evaluation_timeout = evaluation_timeout

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: CatalogStore,
        gateway: ReasoningGateway | None = None,
    ) -> EligibilityEngine:
        return cls(
            store,
            gateway,
            evaluator=CriteriaEvaluator(BorderlinePolicy.from_settings(settings)),
            ranker=RelevanceRanker.from_settings(settings),
            evaluation_timeout=settings.evaluation_budget_seconds,
        )

    @property
    def store(self) -> CatalogStore:
        return self._store

    @property
    def evaluation_timeout(self) -> float:
        return self._evaluation_timeout

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def match(self, profile: UserProfile) -> MatchReport:
        """Evaluate, rank and explain every scheme for ``profile``.

        Raises
        ------
        ValidationError
            If the profile lacks a field that every scheme's criteria need.
            A field missing for only some schemes leaves those schemes
            ineligible and listed in ``undetermined_scheme_ids``.
        CatalogUnavailableError
            If no snapshot is published or the snapshot is empty.
        """
        start = time.perf_counter()
        catalog = self._store.current()
        if len(catalog) == 0:
            raise CatalogUnavailableError(
                "The scheme catalog is empty", details={"version": catalog.version}
            )

        schemes = catalog.schemes
        semaphore = asyncio.Semaphore(len(schemes))
        tasks = [
            asyncio.create_task(self._evaluate_one(profile, scheme, semaphore))
            for scheme in schemes
        ]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        incomplete = [r for r in results if r.missing_field]
        if len(incomplete) == len(results):
            missing = sorted({r.missing_field for r in incomplete})
            raise ValidationError(
                "Profile is missing fields required by every scheme: " + ", ".join(missing),
                details={"fields": missing},
            )

        evaluated = list(zip(schemes, results, strict=True))
        ranked = self._ranker.rank(profile, evaluated)
        matches = [
            m.model_copy(update={"explanation": self._explainer.explain_match(profile, m)})
            for m in ranked
        ]

        report = MatchReport(
            profile_id=profile.profile_id,
            catalog_version=catalog.version,
            matches=matches,
            is_fallback=bool(matches) and all(m.is_alternative for m in matches),
            undetermined_scheme_ids=[r.scheme_id for r in results if r.undetermined],
        )

        logger.info(
            "engine.matched",
            profile_id=profile.profile_id,
            catalog_version=catalog.version,
            schemes_evaluated=len(schemes),
            matches=len(matches),
            is_fallback=report.is_fallback,
            undetermined=len(report.undetermined_scheme_ids),
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return report

    async def _evaluate_one(
        self, profile: UserProfile, scheme: Scheme, semaphore: asyncio.Semaphore
    ) -> EligibilityResult:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self._evaluator.evaluate_async(
                        profile, scheme.eligibility, self._gateway, scheme_id=scheme.scheme_id
                    ),
                    timeout=self._evaluation_timeout,
                )
            except TimeoutError:
                logger.warning(
                    "engine.evaluation_timed_out",
                    scheme_id=scheme.scheme_id,
                    timeout_seconds=self._evaluation_timeout,
                )
                return EligibilityResult.evaluation_timed_out(scheme.scheme_id)
            except ValidationError as exc:
                field_name = (exc.details or {}).get("field")
                if field_name is None:
                    raise
                logger.info(
                    "engine.profile_incomplete",
                    scheme_id=scheme.scheme_id,
                    field=field_name,
                )
                return EligibilityResult.profile_incomplete(
                    scheme.scheme_id, field_name, CriterionKind(exc.details["criterion"])
                )

    # ------------------------------------------------------------------
    # Checklists
    # ------------------------------------------------------------------

    def checklist(self, scheme_id: str, profile: UserProfile) -> Checklist:
        """Build the document checklist for ``scheme_id``.

        Raises
        ------
        SchemeNotFoundError
            If the scheme is not in the current snapshot.
        """
        return self._checklist_builder.build(scheme_id, profile)
