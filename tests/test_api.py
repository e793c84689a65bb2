"""Tests for the FastAPI API endpoints."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from erasure_kernel.api.app import create_app
from erasure_kernel.erasure.targets import InMemoryKeyedTarget
from erasure_kernel.models.erasure import ErasureTargetName
from erasure_kernel.service import AccountErasureService

T = ErasureTargetName
HEADERS = {"user-agent": "Mozilla/5.0 Firefox/131.0", "x-forwarded-for": "203.0.113.7, 10.0.0.1"}


@pytest.fixture
def service():
    svc = AccountErasureService()
    svc.registry[T.PROFILE].put("u1@example.com", {"email": "u1@example.com"})
    svc.registry[T.SESSIONS].add_session("tok-1", "u1@example.com")
    svc.registry[T.SESSIONS].add_session("tok-2", "u1@example.com")
    return svc


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


def _erase(client, identity="u1@example.com", headers=HEADERS, **body):
    payload = {"identity": identity, "credentials_verified": True, **body}
    return client.post("/account/erase", json=payload, headers=headers)


class TestEraseEndpoint:
    def test_successful_erasure(self, client, service):
        response = _erase(client)
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Account successfully deleted"
        assert data["identity"] == "u1@example.com"
        assert data["removedData"]["sessions"] == 2
        assert data["removedData"]["profile"] is True
        assert data["auditId"].startswith("audit_")
        assert "deletedAt" in data
        assert service.audit.get(data["auditId"]) is not None

    def test_unverified_credentials(self, client):
        response = _erase(client, credentials_verified=False)
        assert response.status_code == 401

    def test_blank_identity(self, client):
        response = _erase(client, identity="   ")
        assert response.status_code == 400

    def test_missing_identity(self, client):
        response = client.post("/account/erase", json={"credentials_verified": True})
        assert response.status_code == 422

    def test_blocked_after_rate_limit(self, client):
        for _ in range(3):
            assert _erase(client).status_code == 200

        response = _erase(client)
        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "deletion_blocked"
        assert data["riskLevel"] == "high"
        assert data["blockUntil"] is not None

    def test_partial_failure_returns_500(self, client, service):
        class Broken(InMemoryKeyedTarget):
            def erase(self, identity):
                raise RuntimeError("disk full")

        service.registry.replace(Broken(T.FILE_STORAGE))
        response = _erase(client)
        assert response.status_code == 500
        assert response.json()["errors"] == ["Failed to remove file storage: disk full"]

    def test_origin_from_forwarded_for(self, client, service):
        _erase(client)
        event = service.audit_by_identity("u1@example.com")[0]
        assert event.origin == "203.0.113.7"
        assert event.user_agent == "Mozilla/5.0 Firefox/131.0"

    def test_origin_from_real_ip(self, client, service):
        _erase(client, headers={"x-real-ip": "198.51.100.4", "user-agent": "curl"})
        assert service.audit_by_identity("u1@example.com")[0].origin == "198.51.100.4"

    def test_missing_headers_fall_back_to_unknown(self, client, service):
        _erase(client, headers={"user-agent": ""})
        event = service.audit_by_identity("u1@example.com")[0]
        assert event.origin == "unknown"
        assert event.user_agent == "unknown"

    def test_new_account_is_medium_risk(self, client, service):
        created = (datetime.utcnow() - timedelta(hours=2)).isoformat()
        _erase(client, account_created_at=created)
        event = service.audit_by_identity("u1@example.com")[0]
        assert event.risk_tier.value == "medium"
        assert "new_account" in event.flags


class TestPreviewEndpoint:
    def test_preview_changes_nothing(self, client, service):
        response = client.post(
            "/account/erase/preview",
            json={"identity": "u1@example.com", "credentials_verified": True},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["dryRun"] is True
        assert data["removedData"]["sessions"] == 2
        assert service.registry[T.PROFILE].present("u1@example.com")


class TestAdminEndpoints:
    def test_audit_reads(self, client):
        _erase(client)
        _erase(client, identity="other@example.com")

        mine = client.get("/admin/audit/u1@example.com").json()
        everything = client.get("/admin/audit").json()
        assert {e["identity"] for e in mine} == {"u1@example.com"}
        assert len(everything) > len(mine)
        assert mine[0]["kind"] == "check"

    def test_verify_audit(self, client):
        _erase(client)
        data = client.get("/admin/audit/verify").json()
        assert data["integrity_valid"] is True
        assert data["total_events"] == 3

    def test_erasure_history(self, client):
        _erase(client)
        history = client.get("/admin/erasures/u1@example.com").json()
        assert len(history) == 1
        assert history[0]["removed"]["sessions"] == 2

    def test_reset(self, client):
        _erase(client)
        assert client.post("/admin/reset").json() == {"status": "reset"}
        assert client.get("/admin/audit").json() == []
