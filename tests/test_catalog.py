"""Tests for catalog snapshots, the snapshot store, and JSON loading."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import orjson
import pytest

from setu.data.seed import load_catalog, load_schemes
from setu.exceptions import CatalogIntegrityError, CatalogUnavailableError, SchemeNotFoundError
from setu.models.enums import SchemeCategory
from setu.models.scheme import Document, Scheme
from setu.services.catalog import CatalogStore, SchemeCatalog


def _scheme(scheme_id: str, documents: list[Document] | None = None) -> Scheme:
    return Scheme(
        scheme_id=scheme_id,
        name=scheme_id.upper(),
        description=f"{scheme_id} description",
        category=SchemeCategory.OTHER,
        required_documents=documents or [],
        last_updated=datetime(2025, 1, 1, tzinfo=UTC),
    )


# ---------------------------------------------------------------------------
# SchemeCatalog
# ---------------------------------------------------------------------------


class TestSchemeCatalog:
    def test_build_indexes_schemes(self) -> None:
        catalog = SchemeCatalog.build([_scheme("a"), _scheme("b")], version="v1")
        assert len(catalog) == 2
        assert "a" in catalog
        assert catalog.get("b").scheme_id == "b"
        assert [s.scheme_id for s in catalog] == ["a", "b"], "Declaration order is preserved"
        assert catalog.version == "v1"

    def test_unknown_scheme_raises(self) -> None:
        catalog = SchemeCatalog.build([_scheme("a")], version="v1")
        with pytest.raises(SchemeNotFoundError) as exc_info:
            catalog.get("missing")
        assert exc_info.value.scheme_id == "missing"

    def test_duplicate_scheme_ids_rejected(self) -> None:
        with pytest.raises(CatalogIntegrityError, match="Duplicate scheme id"):
            SchemeCatalog.build([_scheme("a"), _scheme("a")], version="v1")

    def test_cyclic_alternatives_rejected(self) -> None:
        cyclic = Document(
            document_id="x",
            name="X",
            alternatives=[
                Document(
                    document_id="y",
                    name="Y",
                    alternatives=[Document(document_id="x", name="X again")],
                )
            ],
        )
        with pytest.raises(CatalogIntegrityError) as exc_info:
            SchemeCatalog.build([_scheme("a", [cyclic])], version="v1")
        assert exc_info.value.details["scheme_id"] == "a"
        assert exc_info.value.details["cycle"][0] == exc_info.value.details["cycle"][-1]

    def test_self_alternative_rejected(self) -> None:
        doc = Document(
            document_id="x", name="X", alternatives=[Document(document_id="x", name="X")]
        )
        with pytest.raises(CatalogIntegrityError):
            SchemeCatalog.build([_scheme("a", [doc])], version="v1")

    def test_shared_alternative_is_not_a_cycle(self) -> None:
        shared = Document(document_id="z", name="Z")
        docs = [
            Document(document_id="x", name="X", alternatives=[shared]),
            Document(document_id="y", name="Y", alternatives=[shared]),
        ]
        catalog = SchemeCatalog.build([_scheme("a", docs)], version="v1")
        assert len(catalog) == 1

    def test_same_document_ids_across_schemes_are_independent(self) -> None:
        a = _scheme("a", [Document(document_id="x", name="X", alternatives=[Document(document_id="y", name="Y")])])
        b = _scheme("b", [Document(document_id="y", name="Y", alternatives=[Document(document_id="x", name="X")])])
        catalog = SchemeCatalog.build([a, b], version="v1")
        assert len(catalog) == 2, "Alternatives are checked per scheme"


# ---------------------------------------------------------------------------
# CatalogStore
# ---------------------------------------------------------------------------


class TestCatalogStore:
    def test_empty_store_is_unavailable(self) -> None:
        store = CatalogStore()
        assert store.is_ready is False
        with pytest.raises(CatalogUnavailableError):
            store.current()

    def test_publish_swaps_snapshot(self) -> None:
        first = SchemeCatalog.build([_scheme("a")], version="v1")
        second = SchemeCatalog.build([_scheme("a"), _scheme("b")], version="v2")
        store = CatalogStore(first)

        held = store.current()
        previous = store.publish(second)

        assert previous is first
        assert store.current() is second
        assert len(held) == 1, "A reader's snapshot is unaffected by a later publish"


# ---------------------------------------------------------------------------
# JSON loading
# ---------------------------------------------------------------------------


class TestSeedLoading:
    def test_bundled_catalog_loads(self) -> None:
        schemes = load_schemes()
        assert len(schemes) == 6
        assert {s.scheme_id for s in schemes} >= {"pm-kisan", "pmjay", "mgnrega"}

    def test_malformed_entries_are_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "schemes.json"
        path.write_bytes(
            orjson.dumps(
                [
                    {
                        "scheme_id": "ok",
                        "name": "OK",
                        "description": "valid",
                        "category": "health",
                        "last_updated": "2025-01-01T00:00:00Z",
                    },
                    {"scheme_id": "broken", "name": "missing fields"},
                ]
            )
        )
        schemes = load_schemes(path)
        assert [s.scheme_id for s in schemes] == ["ok"]

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_schemes(tmp_path / "absent.json")

    def test_invalid_json_is_an_integrity_error(self, tmp_path: Path) -> None:
        path = tmp_path / "schemes.json"
        path.write_text("[{not json")
        with pytest.raises(CatalogIntegrityError):
            load_schemes(path)

    def test_load_catalog_derives_version_from_file(self) -> None:
        catalog = load_catalog()
        assert catalog.version.startswith("central_schemes@")
        assert len(catalog) == 6

    def test_load_catalog_explicit_version(self) -> None:
        assert load_catalog(version="2025-04").version == "2025-04"
