#!/usr/bin/env python3
"""
Production Monitor - Data Model
Data structures shared by the probe, evaluation, alerting and incident components.

Targets, results and registry entries are immutable snapshots; alerts and
incidents are the only records whose fields change after creation, and only
through their owning manager.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a unique identifier for alerts and incidents."""
    return str(uuid.uuid4())


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# ENUMERATIONS
# =============================================================================

class TargetStatus(Enum):
    """Observed status of a monitored target."""
    UNKNOWN = "unknown"       # Not probed yet
    HEALTHY = "healthy"       # Last probe returned 2xx in time
    UNHEALTHY = "unhealthy"   # Last probe failed


class AlertSeverity(Enum):
    """Alert severity levels."""
    WARNING = "warning"
    CRITICAL = "critical"


class IncidentStatus(Enum):
    """Incident lifecycle states. Transitions only OPEN -> RESOLVED."""
    OPEN = "open"
    RESOLVED = "resolved"


class BreachCategory(Enum):
    """Categories of detected conditions, used to build alert signatures."""
    LATENCY_WARNING = "latency_warning"
    LATENCY_CRITICAL = "latency_critical"
    AVAILABILITY = "availability"
    SYSTEM_AVAILABILITY_WARNING = "system_availability_warning"
    SYSTEM_AVAILABILITY_CRITICAL = "system_availability_critical"
    INCIDENT_OPENED = "incident_opened"
    INCIDENT_RESOLVED = "incident_resolved"


SYSTEM_TARGET = "system"


# =============================================================================
# TARGETS AND HEALTH STATE
# =============================================================================

@dataclass(frozen=True)
class ThresholdPair:
    """Warning/critical pair for a single metric."""
    warning: float
    critical: float

    def to_dict(self) -> Dict[str, float]:
        return {"warning": self.warning, "critical": self.critical}


@dataclass(frozen=True)
class MonitoredTarget:
    """
    A named endpoint under monitoring.
    Immutable after configuration load.
    """
    name: str                                  # Unique target name
    url: str                                   # Endpoint probed with HTTP GET
    timeout_ms: int = 5000                     # Per-probe timeout
    critical: bool = False                     # Eligible for incidents and remediation
    response_time: ThresholdPair = ThresholdPair(warning=2000, critical=5000)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a single probe."""
    status: TargetStatus
    timestamp: datetime
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def healthy(self) -> bool:
        return self.status == TargetStatus.HEALTHY

    @classmethod
    def success(cls, response_time_ms: float, status_code: Optional[int] = None,
                timestamp: Optional[datetime] = None) -> "HealthCheckResult":
        return cls(status=TargetStatus.HEALTHY,
                   timestamp=timestamp or utcnow(),
                   response_time_ms=response_time_ms,
                   status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None,
                timestamp: Optional[datetime] = None) -> "HealthCheckResult":
        return cls(status=TargetStatus.UNHEALTHY,
                   timestamp=timestamp or utcnow(),
                   error=error,
                   status_code=status_code)


@dataclass(frozen=True)
class TargetHealth:
    """
    Registry entry for one target: latest result plus failure streak.
    Replaced, never mutated, on every applied result.
    """
    target_name: str
    result: Optional[HealthCheckResult] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    @property
    def status(self) -> TargetStatus:
        return self.result.status if self.result else TargetStatus.UNKNOWN

    @property
    def healthy(self) -> bool:
        return self.status == TargetStatus.HEALTHY

    @property
    def response_time_ms(self) -> Optional[float]:
        return self.result.response_time_ms if self.result else None

    @property
    def last_check(self) -> Optional[datetime]:
        return self.result.timestamp if self.result else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.target_name,
            "status": self.status.value,
            "response_time_ms": self.response_time_ms,
            "last_check": _isoformat(self.last_check),
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


# =============================================================================
# BREACHES AND ALERTS
# =============================================================================

@dataclass(frozen=True)
class AlertSignature:
    """Deduplication key for alerts: what was breached, and where."""
    target_id: str
    category: BreachCategory

    def __str__(self) -> str:
        return f"{self.target_id}:{self.category.value}"


@dataclass(frozen=True)
class Breach:
    """
    A detected threshold breach. Not an error: input to the alert manager.
    target_name is None for system-wide breaches.
    """
    category: BreachCategory
    severity: AlertSeverity
    message: str
    target_name: Optional[str] = None
    value: Optional[float] = None

    @property
    def signature(self) -> AlertSignature:
        return AlertSignature(self.target_name or SYSTEM_TARGET, self.category)


@dataclass
class AlertCooldownEntry:
    """Suppresses alerts with the same signature until expires_at."""
    signature: AlertSignature
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass
class Alert:
    """
    Alert record. Append-only; only acknowledged/resolved change.
    """
    id: str
    severity: AlertSeverity
    message: str
    signature: AlertSignature
    created_at: datetime
    context_type: Optional[str] = None        # "target", "incident" or "system"
    context_id: Optional[str] = None          # Target name or incident id
    acknowledged: bool = False
    resolved: bool = False

    def copy(self) -> "Alert":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "message": self.message,
            "signature": str(self.signature),
            "context": ({"type": self.context_type, "id": self.context_id}
                        if self.context_type else None),
            "created_at": self.created_at.isoformat(),
            "acknowledged": self.acknowledged,
            "resolved": self.resolved,
        }


# =============================================================================
# INCIDENTS
# =============================================================================

@dataclass(frozen=True)
class TimelineEntry:
    """One timestamped event in an incident's history."""
    timestamp: datetime
    event: str
    details: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event": self.event,
            "details": self.details,
        }


@dataclass
class Incident:
    """
    A sustained-failure episode for one critical target.
    Once resolved it is never reopened; a new episode creates a new incident.
    """
    id: str
    title: str
    description: str
    severity: AlertSeverity
    service: str
    start_time: datetime
    status: IncidentStatus = IncidentStatus.OPEN
    end_time: Optional[datetime] = None
    timeline: List[TimelineEntry] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status == IncidentStatus.OPEN

    def copy(self) -> "Incident":
        return replace(self, timeline=list(self.timeline))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "status": self.status.value,
            "service": self.service,
            "start_time": self.start_time.isoformat(),
            "end_time": _isoformat(self.end_time),
            "timeline": [entry.to_dict() for entry in self.timeline],
        }


# =============================================================================
# METRICS
# =============================================================================

@dataclass(frozen=True)
class MetricSample:
    """Read-only metric snapshot for dashboards and reporters."""
    name: str
    value: float
    unit: str
    timestamp: datetime
    labels: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "unit": self.unit,
            "timestamp": self.timestamp.isoformat(),
            "labels": dict(self.labels),
        }
