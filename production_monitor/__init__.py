#!/usr/bin/env python3
"""
Production Monitor
Health monitoring and incident response engine for HTTP services.

Probes a set of service endpoints on a fixed cadence, evaluates latency and
availability thresholds, raises deduplicated alerts, tracks incidents for
critical services and triggers best-effort remediation.
"""

__version__ = "1.0.0"
__author__ = "Production Monitor Team"
__email__ = "monitoring-support@company.com"

from .core.models import (
    Alert,
    AlertSeverity,
    HealthCheckResult,
    Incident,
    IncidentStatus,
    MonitoredTarget,
    TargetStatus
)

from .core.monitoring_session import MonitoringSession

__all__ = [
    # Data model
    'Alert',
    'AlertSeverity',
    'HealthCheckResult',
    'Incident',
    'IncidentStatus',
    'MonitoredTarget',
    'TargetStatus',

    # Engine
    'MonitoringSession',

    # Version info
    '__version__',
    '__author__',
    '__email__'
]
