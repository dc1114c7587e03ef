#!/usr/bin/env python3
"""
Production Monitor - Error Taxonomy
Exceptions raised inside the monitoring pipeline.

None of these escape a monitoring cycle: probe failures become unhealthy
results, remediation and notification failures are logged and dropped.
"""

from typing import List, Optional


class MonitorError(Exception):
    """Base class for all production monitor errors."""


class ProbeFailure(MonitorError):
    """A health probe failed (timeout, network error, or non-2xx status)."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class RemediationError(MonitorError):
    """A remediation action failed to run or exited unsuccessfully."""

    def __init__(self, action: str, reason: str):
        super().__init__(f"{action}: {reason}")
        self.action = action
        self.reason = reason


class NotificationError(MonitorError):
    """A notification channel could not deliver an alert."""

    def __init__(self, channel: str, reason: str):
        super().__init__(f"{channel}: {reason}")
        self.channel = channel
        self.reason = reason


class ConfigurationError(MonitorError):
    """Configuration could not be loaded or failed validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []
