"""Citizen profile consumed by the eligibility engine.

The profile is validated upstream (age and income bounds are enforced by
the calling layer) and is read-only here.  All fields are optional at the
model level; the evaluator decides which of them a scheme's criteria
actually require and fails loudly when one is absent.

Credential flags are tri-state: ``True`` (holds it), ``False`` (known not
to hold it) and ``None`` (unknown).  Only ``False`` drives the
``likely_missing`` checklist annotation.
"""

from __future__ import annotations

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from setu.models.enums import LanguageCode


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile_id: str = Field(default_factory=lambda: uuid4().hex)

    # ----------------------------------------------------------------
    # Demographics
    # ----------------------------------------------------------------
    age: int | None = Field(default=None, ge=0)
    gender: str | None = None  # "male", "female", "other"
    state: str | None = None
    family_size: int | None = Field(default=None, ge=1)

    # ----------------------------------------------------------------
    # Economic
    # ----------------------------------------------------------------
    occupation: str | None = None
    annual_income: float | None = Field(default=None, ge=0)  # In INR

    # ----------------------------------------------------------------
    # Documents owned (drives checklist flagging)
    # ----------------------------------------------------------------
    has_aadhaar: bool | None = None
    has_voter_id: bool | None = None
    has_bank_account: bool | None = None
    has_ration_card: bool | None = None
    has_income_certificate: bool | None = None
    has_caste_certificate: bool | None = None
    has_domicile_certificate: bool | None = None
    has_land_records: bool | None = None

    preferred_language: LanguageCode = LanguageCode.hi

    def credential(self, flag: str) -> bool | None:
        """Return the tri-state value of a ``has_*`` credential flag."""
        return getattr(self, flag, None)

    def summary(self) -> str:
        """Compact, deterministic description sent to the reasoning service.

        Only fields that are set are included, in a fixed order, so the
        same profile always produces the same summary.
        """
        parts: list[str] = []
        if self.age is not None:
            parts.append(f"age: {self.age}")
        if self.gender:
            parts.append(f"gender: {self.gender}")
        if self.occupation:
            parts.append(f"occupation: {self.occupation}")
        if self.annual_income is not None:
            parts.append(f"annual income: Rs. {self.annual_income:,.0f}")
        if self.state:
            parts.append(f"state: {self.state}")
        if self.family_size is not None:
            parts.append(f"family size: {self.family_size}")
        return "; ".join(parts)
