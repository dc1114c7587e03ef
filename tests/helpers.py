"""Shared test doubles: controllable clock, scripted prober, recording notifier."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union
from unittest.mock import AsyncMock

from production_monitor.config.settings import MonitoringConfig, RemediationConfig
from production_monitor.core.models import (
    Alert, HealthCheckResult, MonitoredTarget, ThresholdPair
)

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, ms: float = 0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, milliseconds=ms)
        return self.now


def ok(response_time_ms: float = 100.0) -> HealthCheckResult:
    return HealthCheckResult.success(response_time_ms, status_code=200)


def fail(error: str = "HTTP 503: Service Unavailable") -> HealthCheckResult:
    return HealthCheckResult.failure(error, status_code=503)


class ScriptedProber:
    """
    Prober returning queued results per target.
    The last queued result repeats once the queue is exhausted.
    """

    def __init__(self, script: Optional[Dict[str, List[HealthCheckResult]]] = None):
        self.script: Dict[str, List[HealthCheckResult]] = {k: list(v) for k, v in (script or {}).items()}
        self.calls: List[str] = []
        self.closed = False

    def set(self, name: str, *results: HealthCheckResult) -> None:
        self.script[name] = list(results)

    async def check(self, target: MonitoredTarget) -> HealthCheckResult:
        self.calls.append(target.name)
        queue = self.script.get(target.name) or [ok()]
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        # Fresh timestamp per probe, same outcome.
        if result.healthy:
            return HealthCheckResult.success(result.response_time_ms, status_code=result.status_code)
        return HealthCheckResult.failure(result.error, status_code=result.status_code)

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier:
    """Notifier double that records dispatched alerts."""

    def __init__(self, fail: bool = False):
        self.dispatched: List[Alert] = []
        self.fail = fail
        self.channels: list = []
        self.close = AsyncMock()

    async def dispatch(self, alert: Alert) -> None:
        await asyncio.sleep(0)
        if self.fail:
            raise ConnectionError("notifier down")
        self.dispatched.append(alert)


def make_target(name: str = "api", critical: bool = True, timeout_ms: int = 5000,
                response_time: Union[ThresholdPair, None] = None,
                url: Optional[str] = None) -> MonitoredTarget:
    return MonitoredTarget(
        name=name,
        url=url or f"http://{name}.internal/health",
        timeout_ms=timeout_ms,
        critical=critical,
        response_time=response_time or ThresholdPair(warning=2000, critical=5000),
    )


def make_config(*targets: MonitoredTarget, **overrides) -> MonitoringConfig:
    overrides.setdefault("remediation", RemediationConfig(enabled=False))
    return MonitoringConfig(targets=tuple(targets), **overrides)
