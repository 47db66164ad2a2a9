from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from setu.models.enums import DocumentType, Gender, SchemeCategory


class EligibilityCriteria(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_age: int | None = Field(default=None, ge=0)
    max_age: int | None = Field(default=None, ge=0)
    min_income: float | None = Field(default=None, ge=0)
    max_income: float | None = Field(default=None, ge=0)
    occupations: list[str] = Field(default_factory=list)
    states: list[str] = Field(default_factory=list)
    min_family_size: int | None = Field(default=None, ge=1)
    gender: Gender = Gender.ANY
    narrative_rules: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> EligibilityCriteria:
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError(f"min_age ({self.min_age}) must not exceed max_age ({self.max_age})")
        if (
            self.min_income is not None
            and self.max_income is not None
            and self.min_income > self.max_income
        ):
            raise ValueError(
                f"min_income ({self.min_income}) must not exceed max_income ({self.max_income})"
            )
        return self


class Document(BaseModel):
    """A document required to apply for a scheme.

    ``alternatives`` forms an OR group: holding this document or any one
    of its alternatives satisfies the same requirement.  Alternatives may
    declare alternatives of their own; the catalog rejects cycles.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    description: str = ""
    description_translations: dict[str, str] = Field(default_factory=dict)
    type: DocumentType = DocumentType.OTHER
    is_mandatory: bool = True
    alternatives: list[Document] = Field(default_factory=list)
    priority: int = 100  # lower = obtain first

    def localized_name(self, language: str) -> str:
        return self.name_translations.get(language, self.name)


class ApplicationStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step_number: int = Field(ge=1)
    description: str
    description_translations: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    address: str | None = None


class Scheme(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheme_id: str
    name: str
    name_translations: dict[str, str] = Field(default_factory=dict)
    description: str
    description_translations: dict[str, str] = Field(default_factory=dict)
    category: SchemeCategory
    eligibility: EligibilityCriteria = Field(default_factory=EligibilityCriteria)
    benefits: str = ""
    benefit_amount: float | None = Field(default=None, ge=0)  # annual, INR
    priority: int = 0  # declared scheme priority, higher wins ties
    required_documents: list[Document] = Field(default_factory=list)
    application_steps: list[ApplicationStep] = Field(default_factory=list)
    official_url: str | None = None
    last_updated: datetime

    def localized_name(self, language: str) -> str:
        return self.name_translations.get(language, self.name)

    def localized_description(self, language: str) -> str:
        return self.description_translations.get(language, self.description)
