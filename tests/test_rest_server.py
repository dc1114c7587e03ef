"""Tests for the REST API endpoints."""

import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from production_monitor.agents.probe_scheduler import ProbeScheduler
from production_monitor.api.rest_server import RestAPIServer
from production_monitor.config.settings import ApiConfig
from production_monitor.core.monitoring_session import MonitoringSession
from tests.helpers import FakeClock, ScriptedProber, fail, make_config, make_target, ok

TOKENS = (
    {"token": "reader-token", "user": "viewer", "permissions": ["read"]},
    {"token": "ops-token", "user": "oncall", "permissions": ["read", "write"]},
    {"token": "admin-token", "user": "root", "permissions": ["read", "write", "admin"]},
)


def _populated_session() -> MonitoringSession:
    prober = ScriptedProber()
    prober.set("api", ok(2500))
    prober.set("payments", fail())
    config = make_config(make_target("api"), make_target("payments"), incident_threshold=1)
    session = MonitoringSession(config, scheduler=ProbeScheduler(prober), clock=FakeClock())
    asyncio.run(session.run_cycle())
    return session


@pytest.fixture
def session():
    return _populated_session()


@pytest.fixture
def client(session):
    return TestClient(RestAPIServer(session, ApiConfig()).app)


def _auth_client(session, config_manager=None) -> TestClient:
    server = RestAPIServer(session, ApiConfig(auth_enabled=True, tokens=TOKENS),
                           config_manager=config_manager)
    return TestClient(server.app)


def _bearer(token: str):
    return {"Authorization": f"Bearer {token}"}


class TestReadEndpoints:
    def test_health(self, client) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["monitoring"] is False

    def test_status(self, client) -> None:
        body = client.get("/api/status").json()
        assert body["availability"] == 50.0
        assert body["open_incidents_count"] == 1
        assert {s["name"]: s["status"] for s in body["services"]} == {
            "api": "healthy", "payments": "unhealthy"}

    def test_metrics(self, client) -> None:
        body = client.get("/api/metrics").json()
        assert body["metrics"]["system_availability"]["value"] == 50.0
        assert "timestamp" in body

    def test_incidents(self, client) -> None:
        body = client.get("/api/incidents", params={"status": "open"}).json()
        assert body["total_count"] == 1
        assert body["incidents"][0]["service"] == "payments"
        assert client.get("/api/incidents", params={"status": "resolved"}).json()["total_count"] == 0

    def test_remediation_history(self, client) -> None:
        assert client.get("/api/remediation/history").json() == {"history": []}


class TestAlertEndpoints:
    def test_list_newest_first(self, client, session) -> None:
        body = client.get("/api/alerts").json()
        expected = [alert.id for alert in reversed(session.list_alerts())]
        assert [alert["id"] for alert in body["alerts"]] == expected
        assert body["total_count"] == len(expected)
        assert body["has_more"] is False

    def test_severity_filter(self, client) -> None:
        body = client.get("/api/alerts", params={"severity": "warning"}).json()
        assert [alert["signature"] for alert in body["alerts"]] == ["api:latency_warning"]

    def test_pagination(self, client) -> None:
        body = client.get("/api/alerts", params={"limit": 1, "offset": 0}).json()
        assert len(body["alerts"]) == 1
        assert body["has_more"] is True

    def test_unknown_severity_is_bad_request(self, client) -> None:
        response = client.get("/api/alerts", params={"severity": "catastrophic"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "BAD_REQUEST"
        assert error["message"] == "Unknown severity: catastrophic"
        assert "timestamp" in error

    def test_acknowledge_and_resolve(self, client, session) -> None:
        alert_id = session.list_alerts()[0].id

        response = client.post(f"/api/alerts/{alert_id}/acknowledge")
        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        assert session.alert_manager.get_alert(alert_id).acknowledged

        response = client.post(f"/api/alerts/{alert_id}/resolve")
        assert response.json()["resolved_by"] == "anonymous"
        unresolved = client.get("/api/alerts", params={"include_resolved": "false"}).json()
        assert alert_id not in [alert["id"] for alert in unresolved["alerts"]]

    def test_unknown_alert(self, client) -> None:
        response = client.post("/api/alerts/does-not-exist/acknowledge")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestAuthentication:
    def test_health_needs_no_token(self, session) -> None:
        assert _auth_client(session).get("/api/health").status_code == 200

    def test_missing_token(self, session) -> None:
        response = _auth_client(session).get("/api/status")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_invalid_token(self, session) -> None:
        response = _auth_client(session).get("/api/status", headers=_bearer("wrong"))
        assert response.status_code == 401

    def test_read_only_token_cannot_write(self, session) -> None:
        client = _auth_client(session)
        alert_id = session.list_alerts()[0].id
        assert client.get("/api/status", headers=_bearer("reader-token")).status_code == 200

        response = client.post(f"/api/alerts/{alert_id}/acknowledge", headers=_bearer("reader-token"))
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Write permission required"

        response = client.post(f"/api/alerts/{alert_id}/acknowledge", headers=_bearer("ops-token"))
        assert response.json()["acknowledged_by"] == "oncall"

    def test_config_requires_admin(self, session) -> None:
        config_manager = MagicMock()
        config_manager.get_masked_config.return_value = {"api": {"authentication": {"tokens": "***MASKED***"}}}
        client = _auth_client(session, config_manager)

        assert client.get("/api/config", headers=_bearer("ops-token")).status_code == 403
        response = client.get("/api/config", headers=_bearer("admin-token"))
        assert response.status_code == 200
        assert response.json()["api"]["authentication"]["tokens"] == "***MASKED***"

    def test_config_unavailable_without_manager(self, session) -> None:
        response = _auth_client(session).get("/api/config", headers=_bearer("admin-token"))
        assert response.status_code == 404
