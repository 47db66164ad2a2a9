"""Tests for derived configuration values."""

from __future__ import annotations

import pytest

from config.settings import Settings
from setu.services.catalog import CatalogStore
from setu.services.engine import EligibilityEngine


class TestEvaluationBudget:
    def test_default_budget_covers_every_reasoning_attempt(self) -> None:
        cfg = Settings(_env_file=None)
        worst_case = (
            cfg.reasoning_max_attempts * cfg.reasoning_timeout_seconds
            + (cfg.reasoning_max_attempts - 1) * cfg.reasoning_backoff_max_seconds
        )
        assert cfg.evaluation_budget_seconds > worst_case, (
            "A scheme must not time out while its narrative rules are still retrying"
        )

    def test_budget_follows_reasoning_settings(self) -> None:
        cfg = Settings(
            _env_file=None,
            reasoning_timeout_seconds=1.0,
            reasoning_max_attempts=2,
            reasoning_backoff_max_seconds=0.5,
        )
        assert cfg.evaluation_budget_seconds == pytest.approx(3.5)

    def test_explicit_timeout_wins(self) -> None:
        cfg = Settings(_env_file=None, evaluation_timeout_seconds=4.0)
        assert cfg.evaluation_budget_seconds == 4.0

    def test_engine_uses_budget(self) -> None:
        cfg = Settings(_env_file=None, reasoning_timeout_seconds=2.0)
        engine = EligibilityEngine.from_settings(cfg, CatalogStore())
        assert engine.evaluation_timeout == cfg.evaluation_budget_seconds


class TestCorsOrigins:
    def test_default_origins_are_local(self) -> None:
        cfg = Settings(_env_file=None)
        assert cfg.cors_origin_list == [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:8000",
        ]

    def test_origins_are_split_and_trimmed(self) -> None:
        cfg = Settings(_env_file=None, cors_origins=" https://setu.example.in , ,https://a.in")
        assert cfg.cors_origin_list == ["https://setu.example.in", "https://a.in"]

    def test_origins_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SETU_CORS_ORIGINS", "https://portal.example.in")
        assert Settings(_env_file=None).cors_origin_list == ["https://portal.example.in"]
