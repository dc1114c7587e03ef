#!/usr/bin/env python3
"""
Production Monitor - Incident Manager
Promotes sustained critical failures into incidents and resolves them on recovery.

Per target: none -> open -> resolved. Resolved is terminal; a later failure
episode opens a new incident. At most one incident per target is open at
any time, and only critical targets get incidents.
"""

from typing import Callable, Dict, List, Optional

import structlog

from .alerting_system import AlertManager
from .models import (
    AlertSeverity, AlertSignature, BreachCategory, Incident, IncidentStatus,
    MonitoredTarget, TargetHealth, TimelineEntry, generate_id, utcnow
)
from .registry import RegistrySnapshot


class IncidentManager:
    """
    Tracks incidents and their timelines.

    Each transition appends a timeline entry and raises a critical alert
    whose context is the incident.
    """

    def __init__(self, alert_manager: AlertManager, incident_threshold: int,
                 clock: Callable = utcnow):
        """
        Args:
            alert_manager: Receives the lifecycle alerts
            incident_threshold: Consecutive failures that open an incident
            clock: Returns the current timezone-aware time
        """
        if incident_threshold < 1:
            raise ValueError("incident_threshold must be >= 1")

        self.alert_manager = alert_manager
        self.incident_threshold = incident_threshold
        self._clock = clock
        self._incidents: List[Incident] = []
        self._open_by_target: Dict[str, Incident] = {}
        self.logger = structlog.get_logger().bind(component="incident_manager")

    def evaluate(self, target: MonitoredTarget, health: TargetHealth) -> Optional[Incident]:
        """
        Open an incident for the target if its failure streak reached the threshold.

        Args:
            target: Target configuration
            health: Current registry entry for the target

        Returns:
            The newly opened incident, or None
        """
        if not target.critical:
            return None
        if health.consecutive_failures < self.incident_threshold:
            return None
        if target.name in self._open_by_target:
            return None

        return self._open(target, health)

    def review(self, snapshot: RegistrySnapshot) -> List[Incident]:
        """
        Resolve open incidents whose target has recovered.

        A target has recovered when it is healthy with zero consecutive failures.

        Returns:
            Incidents resolved by this review
        """
        resolved = []
        for name, incident in list(self._open_by_target.items()):
            health = snapshot.entries.get(name)
            if health is None:
                continue
            if health.healthy and health.consecutive_failures == 0:
                self._resolve(incident)
                resolved.append(incident.copy())
        return resolved

    def open_incident_for(self, target_name: str) -> Optional[Incident]:
        incident = self._open_by_target.get(target_name)
        return incident.copy() if incident else None

    def incidents(self) -> List[Incident]:
        """Copies of all incidents, oldest first."""
        return [incident.copy() for incident in self._incidents]

    def open_count(self) -> int:
        return len(self._open_by_target)

    # -------------------------------------------------------------------------
    # TRANSITIONS
    # -------------------------------------------------------------------------

    def _open(self, target: MonitoredTarget, health: TargetHealth) -> Incident:
        now = self._clock()
        failures = health.consecutive_failures
        incident = Incident(
            id=generate_id(),
            title=f"{target.name} Service Incident",
            description=f"{target.name} has failed {failures} consecutive health checks",
            severity=AlertSeverity.CRITICAL,
            service=target.name,
            start_time=now,
            timeline=[TimelineEntry(
                timestamp=now,
                event="Incident created",
                details=f"{failures} consecutive failures detected"
                        + (f" (last error: {health.last_error})" if health.last_error else ""),
            )],
        )
        self._incidents.append(incident)
        self._open_by_target[target.name] = incident

        self.logger.error("incident_opened",
                          incident_id=incident.id,
                          service=target.name,
                          consecutive_failures=failures)

        self.alert_manager.raise_alert(
            AlertSeverity.CRITICAL,
            f"INCIDENT: {incident.title}",
            AlertSignature(incident.id, BreachCategory.INCIDENT_OPENED),
            context_type="incident",
            context_id=incident.id,
        )
        return incident

    def _resolve(self, incident: Incident) -> None:
        now = self._clock()
        # Never stamp an end before the start, even if the clock stepped back.
        end_time = max(now, incident.start_time)

        incident.status = IncidentStatus.RESOLVED
        incident.end_time = end_time
        incident.timeline.append(TimelineEntry(
            timestamp=end_time,
            event="Incident resolved",
            details="Service has recovered and is healthy",
        ))
        del self._open_by_target[incident.service]

        self.logger.info("incident_resolved",
                         incident_id=incident.id,
                         service=incident.service,
                         duration_seconds=(end_time - incident.start_time).total_seconds())

        self.alert_manager.raise_alert(
            AlertSeverity.CRITICAL,
            f"RESOLVED: {incident.title}",
            AlertSignature(incident.id, BreachCategory.INCIDENT_RESOLVED),
            context_type="incident",
            context_id=incident.id,
        )
