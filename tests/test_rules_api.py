"""Tests for the public rules API (/rules/resolve, /rules/releases) and /health."""

from __future__ import annotations

from fastapi.testclient import TestClient

from regtruth.models.enums import RuleStatus
from regtruth.rules.releaser import release
from tests.factories import make_grounded_rule


def _released(db):
    rule = make_grounded_rule(db, status=RuleStatus.APPROVED)
    return rule, release(db)


class TestResolveEndpoint:
    def test_returns_rule_with_release(self, client_with_db: TestClient, db) -> None:
        rule, bundle = _released(db)

        response = client_with_db.get("/rules/resolve", params={"concept": "pdv-standard-rate", "date": "2025-03-01"})

        assert response.status_code == 200
        data = response.json()
        assert data["release_version"] == "1.0.0"
        assert data["content_hash"] == bundle.content_hash
        assert data["rule_id"] == str(rule.id)
        assert data["rule"] == {
            "conceptSlug": "pdv-standard-rate",
            "value": "25",
            "valueType": "percentage",
            "effectiveFrom": "2025-01-01",
            "effectiveUntil": None,
        }
        assert data["effective_on"] == "2025-03-01"

    def test_no_rule_on_date_returns_404(self, client_with_db: TestClient, db) -> None:
        _released(db)
        response = client_with_db.get("/rules/resolve", params={"concept": "pdv-standard-rate", "date": "2024-06-01"})
        assert response.status_code == 404

    def test_invalid_date_returns_422(self, client_with_db: TestClient) -> None:
        response = client_with_db.get("/rules/resolve", params={"concept": "pdv-standard-rate", "date": "1.3.2025."})
        assert response.status_code == 422

    def test_tampered_release_returns_503(self, client_with_db: TestClient, db) -> None:
        rule, _bundle = _released(db)
        rule.value = "13"
        db.commit()

        response = client_with_db.get("/rules/resolve", params={"concept": "pdv-standard-rate", "date": "2025-03-01"})

        assert response.status_code == 503
        assert "integrity" in response.json()["detail"]


class TestReleaseEndpoint:
    def test_release_detail_lists_entries(self, client_with_db: TestClient, db) -> None:
        _rule, bundle = _released(db)

        response = client_with_db.get("/rules/releases/1.0.0")

        assert response.status_code == 200
        data = response.json()
        assert data["release_type"] == bundle.release_type
        assert data["rule_count"] == 1
        assert [e["conceptSlug"] for e in data["entries"]] == ["pdv-standard-rate"]

    def test_unknown_version_returns_404(self, client_with_db: TestClient) -> None:
        assert client_with_db.get("/rules/releases/9.9.9").status_code == 404

    def test_tampered_release_returns_503(self, client_with_db: TestClient, db) -> None:
        rule, _bundle = _released(db)
        rule.effective_from = rule.effective_from.replace(month=2)
        db.commit()
        assert client_with_db.get("/rules/releases/1.0.0").status_code == 503


class TestHealth:
    def test_health_reports_database(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["database"] == "connected"
