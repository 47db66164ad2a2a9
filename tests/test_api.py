"""Tests for the HTTP surface and its error envelope.

The app is started through ``TestClient`` as a context manager so the
lifespan loads the bundled catalog.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from setu.services.catalog import CatalogStore
from setu.services.engine import EligibilityEngine

FARMER = {
    "age": 45,
    "gender": "male",
    "state": "Uttar Pradesh",
    "occupation": "farmer",
    "annual_income": 60000,
    "family_size": 5,
    "has_aadhaar": False,
    "has_voter_id": False,
    "has_ration_card": False,
}


@pytest.fixture
def client():
    from setu.main import app

    with TestClient(app) as test_client:
        yield test_client


def _assert_envelope(response, status_code: int, code: str) -> dict:
    assert response.status_code == status_code
    body = response.json()
    assert body["error"]["code"] == code
    assert body["request_id"]
    assert body["timestamp"]
    return body["error"]


class TestHealth:
    def test_health_reports_catalog(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["total_schemes"] == 6
        assert data["catalog_version"].startswith("central_schemes@")


class TestSchemes:
    def test_list_schemes(self, client: TestClient) -> None:
        data = client.get("/api/v1/schemes").json()
        assert data["total"] == 6
        assert len(data["schemes"]) == 6

    def test_list_schemes_by_category(self, client: TestClient) -> None:
        data = client.get("/api/v1/schemes", params={"category": "health"}).json()
        assert [s["scheme_id"] for s in data["schemes"]] == ["pmjay"]

    def test_invalid_category(self, client: TestClient) -> None:
        response = client.get("/api/v1/schemes", params={"category": "space"})
        _assert_envelope(response, 400, "http_400")

    def test_scheme_detail(self, client: TestClient) -> None:
        response = client.get("/api/v1/schemes/pm-kisan")
        assert response.status_code == 200
        assert response.json()["eligibility"]["occupations"] == ["farmer"]

    def test_unknown_scheme_is_404(self, client: TestClient) -> None:
        error = _assert_envelope(client.get("/api/v1/schemes/nope"), 404, "scheme_not_found")
        assert error["retryable"] is False
        assert error["details"] == {"scheme_id": "nope"}

    def test_checklist(self, client: TestClient) -> None:
        response = client.post("/api/v1/schemes/pmjay/checklist", json=FARMER)
        assert response.status_code == 200
        data = response.json()
        assert len(data["alternative_groups"]) == 1
        assert data["alternative_groups"][0]["likely_missing"] is True

    def test_checklist_unknown_scheme(self, client: TestClient) -> None:
        response = client.post("/api/v1/schemes/nope/checklist", json=FARMER)
        _assert_envelope(response, 404, "scheme_not_found")


class TestEligibility:
    def test_match(self, client: TestClient) -> None:
        response = client.post("/api/v1/eligibility/match", json=FARMER)
        assert response.status_code == 200
        data = response.json()
        assert data["matches"][0]["scheme"]["scheme_id"] == "pmjay"
        assert data["partially_assessed"] is True
        assert 0 <= data["matches"][0]["score_percent"] <= 100

    def test_require_complete_fails_partial_reports(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/eligibility/match", params={"require_complete": "true"}, json=FARMER
        )
        error = _assert_envelope(response, 503, "eligibility_undetermined")
        assert error["retryable"] is True
        assert error["details"]["scheme_ids"] == ["pm-kisan", "pmay-g"]

    def test_invalid_profile_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/eligibility/match", json={**FARMER, "age": -5})
        _assert_envelope(response, 422, "validation_error")

    def test_profile_unusable_by_every_scheme_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/eligibility/match", json={"age": 30})
        error = _assert_envelope(response, 422, "validation_error")
        assert error["retryable"] is False
        assert error["details"]["fields"] == ["annual_income", "gender", "occupation"]

    def test_profile_without_gender_still_matches(self, client: TestClient) -> None:
        profile = {k: v for k, v in FARMER.items() if k != "gender"}
        response = client.post("/api/v1/eligibility/match", json=profile)
        assert response.status_code == 200
        data = response.json()
        assert data["matches"][0]["scheme"]["scheme_id"] == "pmjay"
        assert "mh-ladki-bahin" in data["undetermined_scheme_ids"]

    def test_request_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/api/v1/schemes/nope", headers={"X-Request-ID": "req-123"})
        assert response.json()["request_id"] == "req-123"
        assert response.headers["X-Request-ID"] == "req-123"

    def test_missing_catalog_is_503(self, client: TestClient) -> None:
        client.app.state.engine = EligibilityEngine(CatalogStore())
        response = client.post("/api/v1/eligibility/match", json=FARMER)
        error = _assert_envelope(response, 503, "catalog_unavailable")
        assert error["retryable"] is True


class TestCatalogReload:
    def test_reload_without_configured_key_in_development(self, client: TestClient) -> None:
        response = client.post("/api/v1/admin/catalog/reload")
        assert response.status_code == 200
        data = response.json()
        assert data["total_schemes"] == 6
        assert data["previous_version"] == data["version"]

    def test_reload_requires_key_when_configured(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "admin_api_key", "s3cret")

        _assert_envelope(client.post("/api/v1/admin/catalog/reload"), 401, "http_401")
        _assert_envelope(
            client.post("/api/v1/admin/catalog/reload", headers={"X-Admin-API-Key": "wrong"}),
            403,
            "http_403",
        )
        response = client.post(
            "/api/v1/admin/catalog/reload", headers={"X-Admin-API-Key": "s3cret"}
        )
        assert response.status_code == 200

    def test_reload_missing_file_keeps_current_catalog(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path
    ) -> None:
        before = client.get("/api/v1/health").json()["catalog_version"]
        monkeypatch.setattr(settings, "catalog_path", tmp_path / "absent.json")

        _assert_envelope(client.post("/api/v1/admin/catalog/reload"), 503, "catalog_unavailable")
        assert client.get("/api/v1/health").json()["catalog_version"] == before

    def test_reload_corrupt_file_is_rejected(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch, tmp_path
    ) -> None:
        corrupt = tmp_path / "corrupt.json"
        corrupt.write_text("[{")
        monkeypatch.setattr(settings, "catalog_path", corrupt)

        _assert_envelope(client.post("/api/v1/admin/catalog/reload"), 409, "catalog_integrity_error")
        assert client.get("/api/v1/health").json()["total_schemes"] == 6
