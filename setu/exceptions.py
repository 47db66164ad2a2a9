"""Error taxonomy for the eligibility engine.

Every error carries a stable ``code`` (used in the HTTP error envelope)
and a ``retryable`` hint for callers.
"""

from __future__ import annotations

from typing import Any


class SetuError(Exception):
    """Base class for all engine errors."""

    code: str = "setu_error"
    retryable: bool = False

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(SetuError):
    """Input does not have the shape the operation requires.

    Caller error: the engine never repairs or retries it.
    """

    code = "validation_error"


class SchemeNotFoundError(SetuError):
    code = "scheme_not_found"

    def __init__(self, scheme_id: str) -> None:
        super().__init__(f"Scheme not found: {scheme_id}", details={"scheme_id": scheme_id})
        self.scheme_id = scheme_id


class UndeterminedEligibilityError(SetuError):
    """Some schemes could not be definitively assessed.

    Not a failure of the request; raised only when a caller asks for it
    via :meth:`MatchReport.raise_for_undetermined`.
    """

    code = "eligibility_undetermined"
    retryable = True

    def __init__(self, scheme_ids: list[str]) -> None:
        super().__init__(
            f"Eligibility could not be fully assessed for {len(scheme_ids)} scheme(s)",
            details={"scheme_ids": scheme_ids},
        )
        self.scheme_ids = scheme_ids


class ExternalReasoningTimeoutError(SetuError):
    code = "reasoning_timeout"
    retryable = True


class CatalogUnavailableError(SetuError):
    code = "catalog_unavailable"
    retryable = True


class CatalogIntegrityError(SetuError):
    """A candidate catalog snapshot was rejected at build time."""

    code = "catalog_integrity_error"
