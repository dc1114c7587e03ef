"""Tests for the data model: signatures, serialization, copies."""

from production_monitor.core.models import (
    Alert, AlertSeverity, AlertSignature, Breach, BreachCategory, HealthCheckResult,
    Incident, IncidentStatus, TargetHealth, TargetStatus, TimelineEntry, SYSTEM_TARGET
)
from tests.helpers import START, make_target


class TestSignatures:
    def test_signature_string(self) -> None:
        sig = AlertSignature("api", BreachCategory.LATENCY_WARNING)
        assert str(sig) == "api:latency_warning"

    def test_signatures_hash_by_value(self) -> None:
        a = AlertSignature("api", BreachCategory.AVAILABILITY)
        b = AlertSignature("api", BreachCategory.AVAILABILITY)
        assert a == b
        assert len({a, b}) == 1

    def test_system_breach_uses_system_target(self) -> None:
        breach = Breach(BreachCategory.SYSTEM_AVAILABILITY_WARNING, AlertSeverity.WARNING, "low")
        assert breach.signature.target_id == SYSTEM_TARGET


class TestHealth:
    def test_unprobed_target_is_unknown(self) -> None:
        health = TargetHealth(target_name="api")
        assert health.status == TargetStatus.UNKNOWN
        assert not health.healthy
        data = health.to_dict()
        assert data["status"] == "unknown"
        assert data["last_check"] is None
        assert data["response_time_ms"] is None

    def test_failure_result(self) -> None:
        result = HealthCheckResult.failure("Request timeout", timestamp=START)
        assert not result.healthy
        assert result.response_time_ms is None
        assert result.timestamp == START

    def test_timeout_seconds(self) -> None:
        assert make_target(timeout_ms=2500).timeout_seconds == 2.5


class TestAlert:
    def test_to_dict_with_context(self) -> None:
        alert = Alert(id="a1", severity=AlertSeverity.CRITICAL, message="down",
                      signature=AlertSignature("api", BreachCategory.AVAILABILITY),
                      created_at=START, context_type="target", context_id="api")
        data = alert.to_dict()
        assert data["context"] == {"type": "target", "id": "api"}
        assert data["signature"] == "api:availability"
        assert data["severity"] == "critical"
        assert data["acknowledged"] is False

    def test_to_dict_without_context(self) -> None:
        alert = Alert(id="a1", severity=AlertSeverity.WARNING, message="m",
                      signature=AlertSignature("x", BreachCategory.LATENCY_WARNING),
                      created_at=START)
        assert alert.to_dict()["context"] is None

    def test_copy_is_independent(self) -> None:
        alert = Alert(id="a1", severity=AlertSeverity.WARNING, message="m",
                      signature=AlertSignature("x", BreachCategory.LATENCY_WARNING),
                      created_at=START)
        copied = alert.copy()
        copied.acknowledged = True
        assert alert.acknowledged is False


class TestIncident:
    def test_copy_does_not_share_timeline(self) -> None:
        incident = Incident(id="i1", title="api Service Incident", description="d",
                            severity=AlertSeverity.CRITICAL, service="api", start_time=START,
                            timeline=[TimelineEntry(START, "Incident created")])
        copied = incident.copy()
        copied.timeline.append(TimelineEntry(START, "extra"))
        assert len(incident.timeline) == 1

    def test_to_dict(self) -> None:
        incident = Incident(id="i1", title="t", description="d", severity=AlertSeverity.CRITICAL,
                            service="api", start_time=START)
        data = incident.to_dict()
        assert data["status"] == IncidentStatus.OPEN.value
        assert data["end_time"] is None
        assert data["timeline"] == []
