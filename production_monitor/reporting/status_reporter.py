#!/usr/bin/env python3
"""
Production Monitor - Status Reporter
Writes JSON status reports and daily summaries for external dashboards.
"""

import json
from datetime import date as date_type
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import structlog

from ..config.settings import ReportingConfig
from ..core.models import utcnow

STATUS_REPORT_PREFIX = "status-"
RECENT_ALERTS = 10


class StatusReporter:
    """
    Persists session state as JSON files under the report directory.

    Status reports are named status-<epoch_ms>.json; only the newest
    `retain_reports` of them are kept.
    """

    def __init__(self, config: Optional[ReportingConfig] = None, environment: str = "production"):
        self.config = config or ReportingConfig()
        self.environment = environment
        self.report_dir = Path(self.config.report_dir)
        self.logger = structlog.get_logger().bind(component="status_reporter")

    def build_status_report(self, session) -> Dict[str, Any]:
        """
        Build the status report document.

        Args:
            session: MonitoringSession to report on

        Returns:
            Report dictionary
        """
        status = session.get_status()
        avg_response_time = session.metrics.get_sample("avg_response_time")
        alerts = session.list_alerts()
        open_incidents = [incident for incident in session.list_incidents() if incident.is_open]

        return {
            "timestamp": utcnow().isoformat(),
            "environment": self.environment,
            "system_health": {
                "availability": status["availability"],
                "avg_response_time_ms": avg_response_time.value if avg_response_time else None,
                "active_alerts": status["active_alerts_count"],
                "open_incidents": status["open_incidents_count"],
                "last_update": status["last_update"],
            },
            "services": status["services"],
            "recent_alerts": [alert.to_dict() for alert in alerts[-RECENT_ALERTS:]],
            "open_incidents": [incident.to_dict() for incident in open_incidents],
        }

    async def write_status_report(self, session) -> Path:
        """Write a status report and prune old ones. Returns the report path."""
        report = self.build_status_report(session)
        epoch_ms = int(utcnow().timestamp() * 1000)
        path = self.report_dir / f"{STATUS_REPORT_PREFIX}{epoch_ms}.json"

        await self._write_json(path, report)
        self._prune_reports()

        self.logger.info("status_report_written", path=str(path))
        return path

    async def write_daily_summary(self, session,
                                  day: Optional[Union[date_type, str]] = None) -> Path:
        """
        Write a summary of alerts and incidents created on the given day.

        Args:
            session: MonitoringSession to summarize
            day: Date to summarize (today, UTC, when omitted)

        Returns:
            Path of the summary file
        """
        if day is None:
            day = utcnow().date()
        elif isinstance(day, str):
            day = date_type.fromisoformat(day)

        alerts = [alert for alert in session.list_alerts() if alert.created_at.date() == day]
        incidents = [incident for incident in session.list_incidents()
                     if incident.start_time.date() == day]
        avg_response_time = session.metrics.get_sample("avg_response_time")

        summary = {
            "date": day.isoformat(),
            "environment": self.environment,
            "alerts": {
                "total": len(alerts),
                "critical": sum(1 for alert in alerts if alert.severity.value == "critical"),
                "warning": sum(1 for alert in alerts if alert.severity.value == "warning"),
                "resolved": sum(1 for alert in alerts if alert.resolved),
            },
            "incidents": {
                "total": len(incidents),
                "open": sum(1 for incident in incidents if incident.is_open),
                "resolved": sum(1 for incident in incidents if not incident.is_open),
            },
            "avg_response_time_ms": avg_response_time.value if avg_response_time else None,
            "availability": session.get_status()["availability"],
        }

        path = self.report_dir / f"daily-summary-{day.isoformat()}.json"
        await self._write_json(path, summary)
        self.logger.info("daily_summary_written", path=str(path), date=day.isoformat())
        return path

    async def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        self.report_dir.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w") as f:
            await f.write(json.dumps(data, indent=2))

    def list_status_reports(self) -> List[Path]:
        """Status report files, oldest first."""
        if not self.report_dir.exists():
            return []
        reports = [path for path in self.report_dir.glob(f"{STATUS_REPORT_PREFIX}*.json")
                   if path.stem[len(STATUS_REPORT_PREFIX):].isdigit()]
        return sorted(reports, key=lambda p: int(p.stem[len(STATUS_REPORT_PREFIX):]))

    def _prune_reports(self) -> None:
        reports = self.list_status_reports()
        excess = len(reports) - max(1, self.config.retain_reports)
        for path in reports[:max(0, excess)]:
            try:
                path.unlink()
            except OSError as e:
                self.logger.warning("status_report_prune_failed", path=str(path), error=str(e))
