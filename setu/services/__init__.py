"""Bharat-Setu service layer -- catalog, evaluation, ranking, explanation and checklists."""

from __future__ import annotations

from setu.services.catalog import CatalogStore, SchemeCatalog
from setu.services.checklist import ChecklistBuilder
from setu.services.engine import EligibilityEngine
from setu.services.evaluator import BorderlinePolicy, CriteriaEvaluator
from setu.services.explanation import LOCAL_AUTHORITY_DISCLAIMER, ExplanationGenerator
from setu.services.ranker import RelevanceRanker
from setu.services.reasoning import (
    HttpNarrativeReasoner,
    NarrativeReasoner,
    NarrativeVerdict,
    ReasoningGateway,
)

__all__ = [
    "BorderlinePolicy",
    "CatalogStore",
    "ChecklistBuilder",
    "CriteriaEvaluator",
    "EligibilityEngine",
    "ExplanationGenerator",
    "HttpNarrativeReasoner",
    "LOCAL_AUTHORITY_DISCLAIMER",
    "NarrativeReasoner",
    "NarrativeVerdict",
    "RelevanceRanker",
    "ReasoningGateway",
    "SchemeCatalog",
]
