"""Immutable scheme catalog snapshots and the store that publishes them.

A :class:`SchemeCatalog` is built once, validated, and never mutated.
The :class:`CatalogStore` holds a single reference to the current
snapshot; ingestion builds a new snapshot off to the side and publishes
it with one reference assignment, so readers always observe a complete
catalog without taking any lock.

Integrity rules enforced at build time:
    * scheme ids are unique;
    * document alternatives form a DAG within each scheme (by document id),
      which the checklist builder relies on.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from types import MappingProxyType

import structlog

from setu.exceptions import CatalogIntegrityError, CatalogUnavailableError, SchemeNotFoundError
from setu.models.scheme import Document, Scheme

logger = structlog.get_logger(__name__)


class SchemeCatalog:
    """A read-only, versioned snapshot of scheme definitions."""

    __slots__ = ("_index", "_schemes", "created_at", "version")

    def __init__(self, schemes: tuple[Scheme, ...], version: str, created_at: datetime) -> None:
        self._schemes = schemes
        self._index = MappingProxyType({s.scheme_id: s for s in schemes})
        self.version = version
        self.created_at = created_at

    @classmethod
    def build(cls, schemes: Iterable[Scheme], version: str) -> SchemeCatalog:
        """Validate ``schemes`` and freeze them into a new snapshot.

        Raises
        ------
        CatalogIntegrityError
            On duplicate scheme ids or cyclic document alternatives.
        """
        ordered = tuple(schemes)
        seen: set[str] = set()
        for scheme in ordered:
            if scheme.scheme_id in seen:
                raise CatalogIntegrityError(
                    f"Duplicate scheme id: {scheme.scheme_id}",
                    details={"scheme_id": scheme.scheme_id},
                )
            seen.add(scheme.scheme_id)
            _check_alternatives_acyclic(scheme)

        catalog = cls(ordered, version=version, created_at=datetime.now(UTC))
        logger.info("catalog.built", version=version, total_schemes=len(ordered))
        return catalog

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def schemes(self) -> tuple[Scheme, ...]:
        return self._schemes

    def get(self, scheme_id: str) -> Scheme:
        try:
            return self._index[scheme_id]
        except KeyError:
            raise SchemeNotFoundError(scheme_id) from None

    def __contains__(self, scheme_id: object) -> bool:
        return scheme_id in self._index

    def __iter__(self) -> Iterator[Scheme]:
        return iter(self._schemes)

    def __len__(self) -> int:
        return len(self._schemes)

    def __repr__(self) -> str:
        return f"SchemeCatalog(version={self.version!r}, schemes={len(self._schemes)})"


class CatalogStore:
    """Holds the current catalog snapshot behind an atomically swapped reference.

    Readers call :meth:`current` and never block.  The lock only
    serialises concurrent publishers so version bookkeeping stays
    consistent; it is never held while reading.
    """

    def __init__(self, catalog: SchemeCatalog | None = None) -> None:
        self._catalog = catalog
        self._publish_lock = threading.Lock()

    def current(self) -> SchemeCatalog:
        catalog = self._catalog
        if catalog is None:
            raise CatalogUnavailableError("No scheme catalog snapshot has been published")
        return catalog

    def publish(self, catalog: SchemeCatalog) -> SchemeCatalog | None:
        """Make ``catalog`` the current snapshot; return the one it replaced."""
        with self._publish_lock:
            previous = self._catalog
            self._catalog = catalog
        logger.info(
            "catalog.published",
            version=catalog.version,
            previous_version=previous.version if previous else None,
            total_schemes=len(catalog),
        )
        return previous

    @property
    def is_ready(self) -> bool:
        return self._catalog is not None


# ---------------------------------------------------------------------------
# Integrity helpers
# ---------------------------------------------------------------------------


def _alternative_edges(documents: Iterable[Document]) -> dict[str, set[str]]:
    """Collect ``document_id -> {alternative ids}`` edges across all nesting levels."""
    edges: dict[str, set[str]] = {}
    stack = list(documents)
    while stack:
        doc = stack.pop()
        targets = edges.setdefault(doc.document_id, set())
        for alt in doc.alternatives:
            targets.add(alt.document_id)
            stack.append(alt)
    return edges


def _check_alternatives_acyclic(scheme: Scheme) -> None:
    edges = _alternative_edges(scheme.required_documents)
    visiting: set[str] = set()
    done: set[str] = set()

    def visit(node: str, path: list[str]) -> None:
        if node in done:
            return
        if node in visiting:
            cycle = [*path[path.index(node):], node]
            raise CatalogIntegrityError(
                f"Cyclic document alternatives in scheme {scheme.scheme_id}: "
                + " -> ".join(cycle),
                details={"scheme_id": scheme.scheme_id, "cycle": cycle},
            )
        visiting.add(node)
        path.append(node)
        for target in sorted(edges.get(node, ())):
            visit(target, path)
        path.pop()
        visiting.discard(node)
        done.add(node)

    for node in sorted(edges):
        visit(node, [])
