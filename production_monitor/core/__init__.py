#!/usr/bin/env python3
"""
Production Monitor - Core Module
"""

from .alerting_system import AlertManager
from .evaluator import ThresholdEvaluator, evaluate_system, evaluate_target
from .exceptions import (
    ConfigurationError,
    MonitorError,
    NotificationError,
    ProbeFailure,
    RemediationError
)
from .incident_manager import IncidentManager
from .metrics import CycleMetrics, MetricsAggregator
from .notifier import NotificationChannel, Notifier, build_notifier
from .registry import HealthRegistry, RegistrySnapshot

__all__ = [
    # State and evaluation
    'HealthRegistry',
    'RegistrySnapshot',
    'ThresholdEvaluator',
    'evaluate_target',
    'evaluate_system',
    'MetricsAggregator',
    'CycleMetrics',

    # Alerting and incidents
    'AlertManager',
    'IncidentManager',
    'Notifier',
    'NotificationChannel',
    'build_notifier',

    # Errors
    'MonitorError',
    'ProbeFailure',
    'RemediationError',
    'NotificationError',
    'ConfigurationError'
]
