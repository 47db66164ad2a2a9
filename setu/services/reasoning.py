"""Bounded access to the external narrative-rule reasoning service.

Narrative eligibility rules ("family must not own a pucca house") are
free text and cannot be checked mechanically.  They are delegated to an
external reasoning collaborator that answers ``supported``,
``unsupported`` or ``undetermined`` for a (profile summary, rule) pair.

:class:`ReasoningGateway` wraps any :class:`NarrativeReasoner` with:

    * a concurrency limiter (``asyncio.Semaphore``) independent of the
      evaluation worker pool;
    * a per-attempt timeout (``asyncio.wait_for``);
    * bounded retries with exponential backoff (tenacity).

When the collaborator is absent, keeps failing, or keeps timing out, the
verdict is ``undetermined`` -- never an assumed pass or fail.
Cancellation is not intercepted and propagates to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Final, Protocol

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from setu.exceptions import ExternalReasoningTimeoutError
from setu.models.enums import NarrativeOutcome

logger = structlog.get_logger(__name__)

_EVALUATE_PATH: Final[str] = "/v1/narrative-rules/evaluate"


@dataclass(slots=True, frozen=True)
class NarrativeVerdict:
    outcome: NarrativeOutcome
    rationale: str = ""

    @classmethod
    def undetermined(cls, rationale: str) -> NarrativeVerdict:
        return cls(outcome=NarrativeOutcome.UNDETERMINED, rationale=rationale)


class NarrativeReasoner(Protocol):
    """Anything that can judge one narrative rule against a profile summary."""

    async def evaluate_narrative_rule(
        self, profile_summary: str, rule_text: str, timeout: float
    ) -> NarrativeVerdict: ...


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------


class HttpNarrativeReasoner:
    """Client for a remote reasoning service speaking JSON over HTTP.

    Request body: ``{"profile_summary", "rule_text"}``.
    Response body: ``{"outcome": "supported"|"unsupported"|"undetermined",
    "rationale": str}``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 3.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=4),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def evaluate_narrative_rule(
        self, profile_summary: str, rule_text: str, timeout: float
    ) -> NarrativeVerdict:
        response = await self._client.post(
            _EVALUATE_PATH,
            json={"profile_summary": profile_summary, "rule_text": rule_text},
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()

        raw_outcome = payload.get("outcome")
        try:
            outcome = NarrativeOutcome(raw_outcome)
        except ValueError:
            logger.warning("reasoning.unknown_outcome", raw_outcome=raw_outcome)
            outcome = NarrativeOutcome.UNDETERMINED
        return NarrativeVerdict(outcome=outcome, rationale=str(payload.get("rationale", "")))


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class ReasoningGateway:
    """Concurrency-limited, time-bounded, retrying access to a reasoner.

    Parameters
    ----------
    reasoner:
        The collaborator to call, or ``None`` when none is configured.
    max_concurrent:
        Maximum in-flight calls to the collaborator across all requests
        sharing this gateway.
    timeout:
        Seconds allowed per attempt.
    max_attempts:
        Total attempts (first call plus retries) before giving up.
    backoff_min, backoff_max:
        Bounds for the exponential wait between attempts, in seconds.
    """

    def __init__(
        self,
        reasoner: NarrativeReasoner | None,
        *,
        max_concurrent: int = 4,
        timeout: float = 3.0,
        max_attempts: int = 3,
        backoff_min: float = 0.25,
        backoff_max: float = 2.0,
    ) -> None:
        self._reasoner = reasoner
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max

    @property
    def is_available(self) -> bool:
        return self._reasoner is not None

    async def evaluate(self, profile_summary: str, rule_text: str) -> NarrativeVerdict:
        """Judge ``rule_text`` for the profile; never raises except on cancellation."""
        if self._reasoner is None:
            return NarrativeVerdict.undetermined("reasoning service not configured")

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=self._backoff_min, min=self._backoff_min, max=self._backoff_max
            ),
            reraise=True,
        )
        try:
            return await retrying(self._attempt, self._reasoner, profile_summary, rule_text)
        except ExternalReasoningTimeoutError:
            logger.warning(
                "reasoning.timed_out",
                attempts=self._max_attempts,
                timeout_seconds=self._timeout,
            )
            return NarrativeVerdict.undetermined("reasoning service timed out")
        except Exception as exc:
            logger.warning(
                "reasoning.failed",
                attempts=self._max_attempts,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return NarrativeVerdict.undetermined("reasoning service unavailable")

    async def _attempt(
        self, reasoner: NarrativeReasoner, profile_summary: str, rule_text: str
    ) -> NarrativeVerdict:
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    reasoner.evaluate_narrative_rule(profile_summary, rule_text, self._timeout),
                    timeout=self._timeout,
                )
            except TimeoutError:
                raise ExternalReasoningTimeoutError(
                    f"Reasoning call exceeded {self._timeout}s"
                ) from None
