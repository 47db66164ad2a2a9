from __future__ import annotations

from enum import StrEnum


class LanguageCode(StrEnum):
    """ISO 639-1 codes for the supported voice languages + English."""

    __slots__ = ()

    hi = "hi"       # Hindi
    ta = "ta"       # Tamil
    mr = "mr"       # Marathi
    te = "te"       # Telugu
    bn = "bn"       # Bengali
    gu = "gu"       # Gujarati
    kn = "kn"       # Kannada
    ml = "ml"       # Malayalam
    pa = "pa"       # Punjabi
    or_lang = "or"  # Odia; 'or' is a Python keyword
    en = "en"       # English


class SchemeCategory(StrEnum):
    __slots__ = ()

    AGRICULTURE = "agriculture"
    HEALTH = "health"
    EDUCATION = "education"
    PENSION = "pension"
    HOUSING = "housing"
    EMPLOYMENT = "employment"
    SOCIAL_SECURITY = "social_security"
    FINANCIAL_INCLUSION = "financial_inclusion"
    WOMEN_CHILD = "women_child"
    OTHER = "other"


class DocumentType(StrEnum):
    __slots__ = ()

    IDENTITY_PROOF = "identity_proof"
    ADDRESS_PROOF = "address_proof"
    INCOME_CERTIFICATE = "income_certificate"
    CASTE_CERTIFICATE = "caste_certificate"
    BANK_DETAILS = "bank_details"
    LAND_RECORDS = "land_records"
    OTHER = "other"


class Gender(StrEnum):
    __slots__ = ()

    MALE = "male"
    FEMALE = "female"
    ANY = "any"


class CriterionKind(StrEnum):
    """Criterion types, declared in canonical explanation order."""

    __slots__ = ()

    AGE = "age"
    GENDER = "gender"
    OCCUPATION = "occupation"
    INCOME = "income"
    REGION = "region"
    FAMILY_SIZE = "family_size"
    NARRATIVE = "narrative"


class CriterionStatus(StrEnum):
    __slots__ = ()

    MATCHED = "matched"
    UNMATCHED = "unmatched"
    BORDERLINE = "borderline"
    UNDETERMINED = "undetermined"


class NarrativeOutcome(StrEnum):
    __slots__ = ()

    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    UNDETERMINED = "undetermined"
