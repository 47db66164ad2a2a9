"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. All keys use
the ``SETU_`` prefix and may be supplied through a ``.env`` file.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_BUNDLED_CATALOG: Path = (
    Path(__file__).resolve().parent.parent / "setu" / "data" / "schemes" / "central_schemes.json"
)


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the Bharat-Setu eligibility engine."""

    model_config = SettingsConfigDict(
        env_prefix="SETU_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── Catalog ────────────────────────────────────────────────────────
    catalog_path: Path = _BUNDLED_CATALOG
    catalog_version: str | None = None  # derived from the file when unset

    # ── Borderline policy (relative tolerance per criterion kind) ──────
    borderline_income_tolerance: float = Field(default=0.05, ge=0.0, le=1.0)
    borderline_age_tolerance: float = Field(default=0.0, ge=0.0, le=1.0)
    borderline_family_size_tolerance: float = Field(default=0.0, ge=0.0, le=1.0)
    borderline_penalty: float = Field(default=0.15, ge=0.0, le=1.0)
    undetermined_penalty: float = Field(default=0.25, ge=0.0, le=1.0)

    # ── Ranking ────────────────────────────────────────────────────────
    neutral_benefit_factor: float = Field(default=0.75, gt=0.0, le=1.0)
    fallback_alternatives: int = Field(default=3, ge=1)

    # ── Evaluation / external reasoning ────────────────────────────────
    # Per-scheme budget; derived from the reasoning settings when unset.
    evaluation_timeout_seconds: float | None = Field(default=None, gt=0.0)
    reasoning_url: str | None = None
    reasoning_timeout_seconds: float = Field(default=3.0, gt=0.0)
    reasoning_max_concurrent: int = Field(default=4, ge=1)
    reasoning_max_attempts: int = Field(default=3, ge=1)
    reasoning_backoff_max_seconds: float = Field(default=2.0, ge=0.0)

    # ── CORS ───────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:8000"

    # ── Admin API Key ──────────────────────────────────────────────────
    admin_api_key: str = ""

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def evaluation_budget_seconds(self) -> float:
        """Seconds a single scheme evaluation may take.

        Unless set explicitly this covers every reasoning attempt, the
        longest backoff between attempts, and one attempt's worth of
        waiting for a concurrency slot.
        """
        if self.evaluation_timeout_seconds is not None:
            return self.evaluation_timeout_seconds
        attempts = self.reasoning_max_attempts
        return (attempts + 1) * self.reasoning_timeout_seconds + (
            attempts - 1
        ) * self.reasoning_backoff_max_seconds


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
