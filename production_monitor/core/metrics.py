#!/usr/bin/env python3
"""
Production Monitor - Metrics Aggregator
Computes system-wide figures from registry snapshots and publishes MetricSamples.

Availability and average response time are cycle-local figures computed from
a single snapshot; there is no historical window. The optional EWMA
smoothing policy publishes a separate sample and never replaces the
cycle-local one.
"""

import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import psutil
import structlog

from .models import MetricSample, TargetStatus, utcnow
from .registry import RegistrySnapshot

SMOOTHING_NONE = "none"
SMOOTHING_EWMA = "ewma"


@dataclass(frozen=True)
class CycleMetrics:
    """Figures computed from one registry snapshot."""
    cycle: int
    total_targets: int
    healthy_targets: int
    availability_percent: float
    average_response_time_ms: Optional[float]

    @property
    def unhealthy_targets(self) -> int:
        return self.total_targets - self.healthy_targets


def compute_availability(healthy: int, total: int) -> float:
    """Healthy share of targets as a percentage. An empty target set counts as fully available."""
    if total == 0:
        return 100.0
    return healthy / total * 100.0


class MetricsAggregator:
    """
    Keeps the latest MetricSample per metric name.

    Samples are published per cycle (availability, latency, target counts)
    and by the separately scheduled system collection (process resources,
    alert and incident counts).
    """

    def __init__(self, smoothing: str = SMOOTHING_NONE, smoothing_alpha: float = 0.3,
                 clock: Callable = utcnow):
        if smoothing not in (SMOOTHING_NONE, SMOOTHING_EWMA):
            raise ValueError(f"Unknown smoothing policy: {smoothing}")

        self.smoothing = smoothing
        self.smoothing_alpha = smoothing_alpha
        self._clock = clock
        self._samples: Dict[str, MetricSample] = {}
        self._smoothed_response_time: Optional[float] = None
        self._process = psutil.Process(os.getpid())
        self._started = time.monotonic()
        self.logger = structlog.get_logger().bind(component="metrics")

    def compute_cycle(self, snapshot: RegistrySnapshot) -> CycleMetrics:
        entries = snapshot.values()
        healthy = [entry for entry in entries if entry.status == TargetStatus.HEALTHY]
        response_times = [entry.response_time_ms for entry in healthy
                          if entry.response_time_ms is not None]

        average = sum(response_times) / len(response_times) if response_times else None

        return CycleMetrics(
            cycle=snapshot.cycle,
            total_targets=len(entries),
            healthy_targets=len(healthy),
            availability_percent=compute_availability(len(healthy), len(entries)),
            average_response_time_ms=average,
        )

    def publish_cycle(self, metrics: CycleMetrics) -> Dict[str, MetricSample]:
        """
        Record the samples for one cycle.

        Args:
            metrics: Figures computed by compute_cycle()

        Returns:
            The samples published for this cycle
        """
        now = self._clock()
        labels = {"cycle": str(metrics.cycle)}
        published = {
            "system_availability": MetricSample(
                "system_availability", metrics.availability_percent, "percent", now, labels),
            "healthy_targets": MetricSample(
                "healthy_targets", metrics.healthy_targets, "count", now, labels),
            "unhealthy_targets": MetricSample(
                "unhealthy_targets", metrics.unhealthy_targets, "count", now, labels),
        }

        if metrics.average_response_time_ms is not None:
            published["avg_response_time"] = MetricSample(
                "avg_response_time", round(metrics.average_response_time_ms), "ms", now, labels)

            if self.smoothing == SMOOTHING_EWMA:
                smoothed = self._update_smoothed(metrics.average_response_time_ms)
                published["avg_response_time_smoothed"] = MetricSample(
                    "avg_response_time_smoothed", round(smoothed, 2), "ms", now,
                    {"policy": SMOOTHING_EWMA, "alpha": str(self.smoothing_alpha)})

        self._samples.update(published)
        self.logger.debug("cycle_metrics_published",
                          cycle=metrics.cycle,
                          availability=metrics.availability_percent,
                          avg_response_time=metrics.average_response_time_ms)
        return published

    def collect_system_metrics(self, active_alerts: int, open_incidents: int) -> Dict[str, MetricSample]:
        """Record process resources and alert/incident counts."""
        now = self._clock()
        memory_mb = self._process.memory_info().rss / 1024 / 1024

        published = {
            "process_memory_usage": MetricSample("process_memory_usage", round(memory_mb, 2), "MB", now),
            "process_uptime": MetricSample(
                "process_uptime", round(time.monotonic() - self._started, 1), "seconds", now),
            "active_alerts": MetricSample("active_alerts", active_alerts, "count", now),
            "open_incidents": MetricSample("open_incidents", open_incidents, "count", now),
        }
        self._samples.update(published)
        return published

    def get_sample(self, name: str) -> Optional[MetricSample]:
        return self._samples.get(name)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        return {name: sample.to_dict() for name, sample in self._samples.items()}

    def _update_smoothed(self, value: float) -> float:
        if self._smoothed_response_time is None:
            self._smoothed_response_time = value
        else:
            alpha = self.smoothing_alpha
            self._smoothed_response_time = alpha * value + (1 - alpha) * self._smoothed_response_time
        return self._smoothed_response_time
