#!/usr/bin/env python3
"""
Production Monitor - Monitoring Session
Owns all monitoring state and coordinates the health-check cycle.

One cycle is: probe all targets concurrently, apply the results to the
registry under the session lock, evaluate thresholds, raise alerts, open
incidents, publish cycle metrics, sweep expired cooldowns and finally
schedule remediation for unhealthy critical targets. Metrics collection,
incident review and status reporting run as separately scheduled tasks.
"""

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from ..agents.probe_scheduler import ProbeScheduler
from ..agents.remediation_agent import RemediationAttempt, RemediationDispatcher
from ..config.settings import MonitoringConfig
from .alerting_system import AlertManager
from .evaluator import ThresholdEvaluator
from .incident_manager import IncidentManager
from .metrics import CycleMetrics, MetricsAggregator
from .models import (
    Alert, AlertSeverity, Incident, IncidentStatus, MonitoredTarget, TargetStatus, utcnow
)
from .registry import HealthRegistry

DAILY_SUMMARY_INTERVAL = 86400


class MonitoringSession:
    """
    The single owner of registry, alert, incident and metric state.

    Every mutation of registry, alert or incident state happens inside
    run_cycle() or review_incidents() while holding the session lock.
    Readers get copies.
    """

    def __init__(self, config: MonitoringConfig,
                 notifier=None,
                 scheduler: Optional[ProbeScheduler] = None,
                 remediation: Optional[RemediationDispatcher] = None,
                 reporter=None,
                 clock: Callable = utcnow):
        """
        Initialize the session.

        Args:
            config: Validated monitoring configuration
            notifier: Alert fan-out with an async dispatch(alert) method
            scheduler: Probe scheduler (an HTTP scheduler by default)
            remediation: Remediation dispatcher (built from config by default)
            reporter: Object with async write_status_report(session) and
                write_daily_summary(session, day) methods
            clock: Returns the current timezone-aware time
        """
        self.config = config
        self.notifier = notifier
        self.reporter = reporter
        self._clock = clock

        self.registry = HealthRegistry(config.targets)
        self.evaluator = ThresholdEvaluator(config.availability)
        self.metrics = MetricsAggregator(smoothing=config.response_time_smoothing,
                                         smoothing_alpha=config.smoothing_alpha,
                                         clock=clock)
        self.alert_manager = AlertManager(config.alert_cooldown_ms, notifier=notifier, clock=clock)
        self.incident_manager = IncidentManager(self.alert_manager, config.incident_threshold,
                                                clock=clock)
        self.scheduler = scheduler or ProbeScheduler()
        self.remediation = remediation or RemediationDispatcher(config.remediation)

        self._lock = asyncio.Lock()
        self._remediation_tasks: Dict[str, asyncio.Task] = {}
        self._periodic_tasks: List[asyncio.Task] = []
        self.running = False
        self.last_update = None
        self.last_cycle: Optional[CycleMetrics] = None
        self.logger = structlog.get_logger().bind(component="monitoring_session")

    @property
    def targets(self) -> List[MonitoredTarget]:
        return list(self.config.targets)

    # -------------------------------------------------------------------------
    # CYCLE
    # -------------------------------------------------------------------------

    async def run_cycle(self) -> CycleMetrics:
        """
        Run one health-check cycle.

        Returns:
            CycleMetrics: Figures computed from the cycle's snapshot
        """
        results = await self.scheduler.probe_all(self.config.targets)

        async with self._lock:
            snapshot = self.registry.apply_results(results)

            for target in self.config.targets:
                health = snapshot.get(target.name)
                try:
                    for breach in self.evaluator.evaluate_target(target, health):
                        self.alert_manager.raise_breach(breach)
                    self.incident_manager.evaluate(target, health)
                except Exception:
                    self.logger.exception("target_evaluation_error", target=target.name)

            cycle_metrics = self.metrics.compute_cycle(snapshot)
            try:
                self.metrics.publish_cycle(cycle_metrics)
                for breach in self.evaluator.evaluate_system(cycle_metrics.availability_percent):
                    self.alert_manager.raise_breach(breach)
            except Exception:
                self.logger.exception("system_evaluation_error", cycle=snapshot.cycle)

            self.alert_manager.sweep_expired()
            self.last_cycle = cycle_metrics
            self.last_update = self._clock()

            failing = [target for target in self.config.targets
                       if target.critical
                       and snapshot.get(target.name).status == TargetStatus.UNHEALTHY]

        self._schedule_remediation(failing)

        self.logger.info("health_check_cycle_completed",
                         cycle=cycle_metrics.cycle,
                         availability=round(cycle_metrics.availability_percent, 2),
                         healthy=cycle_metrics.healthy_targets,
                         total=cycle_metrics.total_targets)
        return cycle_metrics

    async def review_incidents(self) -> List[Incident]:
        """Resolve open incidents whose targets have recovered."""
        async with self._lock:
            snapshot = self.registry.snapshot()
            return self.incident_manager.review(snapshot)

    async def collect_metrics(self) -> Dict[str, Any]:
        """Record process and alert/incident metrics."""
        async with self._lock:
            active_alerts = self.alert_manager.active_count()
            open_incidents = self.incident_manager.open_count()
        samples = self.metrics.collect_system_metrics(active_alerts, open_incidents)
        return {name: sample.to_dict() for name, sample in samples.items()}

    # -------------------------------------------------------------------------
    # REMEDIATION
    # -------------------------------------------------------------------------

    def _schedule_remediation(self, targets: List[MonitoredTarget]) -> None:
        if not targets or not self.remediation.enabled:
            return

        for target in targets:
            running = self._remediation_tasks.get(target.name)
            if running is not None and not running.done():
                self.logger.debug("remediation_in_flight", target=target.name)
                continue

            task = asyncio.get_running_loop().create_task(self._remediate(target))
            self._remediation_tasks[target.name] = task

    async def _remediate(self, target: MonitoredTarget) -> None:
        try:
            await self.remediation.remediate(target)
        except Exception:
            self.logger.exception("remediation_error", target=target.name)

    async def wait_for_remediation(self) -> None:
        """Wait for all in-flight remediation runs to finish."""
        pending = [task for task in self._remediation_tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def remediation_history(self, limit: Optional[int] = None) -> List[RemediationAttempt]:
        return self.remediation.history(limit)

    # -------------------------------------------------------------------------
    # READ ACCESS
    # -------------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """
        Status snapshot for dashboards and reporters.

        Returns:
            Dict with availability, per-service state, alert and incident counts
        """
        snapshot = self.registry.snapshot()
        services = []
        for target in self.config.targets:
            entry = snapshot.get(target.name).to_dict()
            entry["critical"] = target.critical
            services.append(entry)

        sample = self.metrics.get_sample("system_availability")
        return {
            "availability": sample.value if sample else None,
            "services": services,
            "active_alerts_count": self.alert_manager.active_count(),
            "open_incidents_count": self.incident_manager.open_count(),
            "last_update": self.last_update.isoformat() if self.last_update else None,
        }

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        return self.metrics.get_metrics()

    def list_alerts(self, severity: Optional[AlertSeverity] = None,
                    include_resolved: bool = True) -> List[Alert]:
        alerts = self.alert_manager.alerts()
        if severity is not None:
            alerts = [alert for alert in alerts if alert.severity == severity]
        if not include_resolved:
            alerts = [alert for alert in alerts if not alert.resolved]
        return alerts

    def list_incidents(self, status: Optional[IncidentStatus] = None) -> List[Incident]:
        incidents = self.incident_manager.incidents()
        if status is not None:
            incidents = [incident for incident in incidents if incident.status == status]
        return incidents

    def acknowledge_alert(self, alert_id: str) -> bool:
        return self.alert_manager.acknowledge(alert_id)

    def resolve_alert(self, alert_id: str) -> bool:
        return self.alert_manager.resolve(alert_id)

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic health-check, metrics, incident review and reporting tasks."""
        if self.running:
            return
        self.running = True

        loop = asyncio.get_running_loop()
        jobs = [
            ("health_check", self.config.check_interval, self.run_cycle),
            ("metrics_collection", self.config.metrics_interval, self.collect_metrics),
            ("incident_review", self.config.incident_review_interval, self.review_incidents),
        ]
        if self.reporter is not None and self.config.reporting.enabled:
            jobs.append(("status_report", self.config.reporting.interval, self._write_report))
            jobs.append(("daily_summary", DAILY_SUMMARY_INTERVAL, self._write_daily_summary))

        for name, interval, job in jobs:
            self._periodic_tasks.append(loop.create_task(self._periodic(name, interval, job)))

        self.logger.info("monitoring_started",
                         targets=len(self.config.targets),
                         check_interval=self.config.check_interval)

    async def _periodic(self, name: str, interval: float,
                        job: Callable[[], Awaitable[Any]]) -> None:
        loop = asyncio.get_running_loop()
        while self.running:
            started = loop.time()
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.logger.exception("periodic_task_error", task=name)
            await asyncio.sleep(max(0.0, interval - (loop.time() - started)))

    async def _write_report(self) -> None:
        await self.reporter.write_status_report(self)

    async def _write_daily_summary(self) -> None:
        """Summarize the previous UTC day."""
        previous_day = (self._clock() - timedelta(days=1)).date()
        await self.reporter.write_daily_summary(self, previous_day)

    async def stop(self) -> None:
        """Cancel the periodic tasks and wait for background work to settle."""
        self.running = False
        for task in self._periodic_tasks:
            task.cancel()
        if self._periodic_tasks:
            await asyncio.gather(*self._periodic_tasks, return_exceptions=True)
        self._periodic_tasks = []

        await self.wait_for_remediation()
        await self.alert_manager.wait_for_notifications()
        self.logger.info("monitoring_stopped")

    async def cleanup(self) -> None:
        """Stop monitoring and release network resources."""
        await self.stop()
        try:
            await self.scheduler.close()
        except Exception as e:
            self.logger.error("scheduler_cleanup_error", error=str(e))
        if self.notifier is not None:
            await self.notifier.close()
