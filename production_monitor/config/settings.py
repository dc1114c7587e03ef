#!/usr/bin/env python3
"""
Production Monitor - Typed Configuration
Validated configuration structures built from the merged YAML document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import ConfigurationError
from ..core.models import AlertSeverity, MonitoredTarget, ThresholdPair


@dataclass(frozen=True)
class ChannelConfig:
    """A notification channel entry from notifications.channels."""
    channel_id: str
    type: str
    enabled: bool = True
    severities: Tuple[AlertSeverity, ...] = ()
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RemediationActionConfig:
    """A remediation action entry from remediation.actions."""
    name: str
    enabled: bool = True
    match: Optional[str] = None              # Case-insensitive substring of the target name
    command: Optional[str] = None            # Shell command, {service} is substituted
    timeout_seconds: float = 60


@dataclass(frozen=True)
class RemediationConfig:
    enabled: bool = True
    history_size: int = 100
    actions: Tuple[RemediationActionConfig, ...] = ()


@dataclass(frozen=True)
class ReportingConfig:
    enabled: bool = True
    interval: float = 300
    report_dir: str = "reports/monitoring"
    retain_reports: int = 50


@dataclass(frozen=True)
class ApiConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    auth_enabled: bool = False
    tokens: Tuple[Dict[str, Any], ...] = ()
    cors_origins: Tuple[str, ...] = ("*",)


@dataclass(frozen=True)
class MonitoringConfig:
    """
    Every option recognized by the monitor, with defaults applied.
    Built once at load time; components receive the pieces they need.
    """
    targets: Tuple[MonitoredTarget, ...]
    environment: str = "production"
    log_level: str = "INFO"
    check_interval: float = 30
    metrics_interval: float = 60
    incident_review_interval: float = 60
    incident_threshold: int = 3
    alert_cooldown_ms: int = 300000
    response_time: ThresholdPair = ThresholdPair(warning=2000, critical=5000)
    availability: ThresholdPair = ThresholdPair(warning=99.5, critical=99.0)
    response_time_smoothing: str = "none"
    smoothing_alpha: float = 0.3
    notification_channels: Tuple[ChannelConfig, ...] = ()
    remediation: RemediationConfig = RemediationConfig()
    reporting: ReportingConfig = ReportingConfig()
    api: ApiConfig = ApiConfig()

    def get_target(self, name: str) -> MonitoredTarget:
        for target in self.targets:
            if target.name == name:
                return target
        raise KeyError(name)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "MonitoringConfig":
        """
        Build the typed configuration from a defaults-applied, validated dictionary.

        Raises:
            ConfigurationError: If a value has the wrong shape
        """
        try:
            global_config = config.get("global", {})
            thresholds = config.get("thresholds", {})
            response_time = _threshold_pair(thresholds.get("response_time", {}), ThresholdPair(2000, 5000))
            availability = _threshold_pair(thresholds.get("availability", {}), ThresholdPair(99.5, 99.0))
            metrics = config.get("metrics", {})

            return cls(
                targets=tuple(_target(raw, response_time) for raw in config.get("targets", [])),
                environment=str(global_config.get("environment", "production")),
                log_level=str(global_config.get("log_level", "INFO")),
                check_interval=float(global_config.get("check_interval", 30)),
                metrics_interval=float(global_config.get("metrics_interval", 60)),
                incident_review_interval=float(global_config.get("incident_review_interval", 60)),
                incident_threshold=int(global_config.get("incident_threshold", 3)),
                alert_cooldown_ms=int(global_config.get("alert_cooldown_ms", 300000)),
                response_time=response_time,
                availability=availability,
                response_time_smoothing=str(metrics.get("response_time_smoothing", "none")),
                smoothing_alpha=float(metrics.get("smoothing_alpha", 0.3)),
                notification_channels=_channels(config.get("notifications", {}).get("channels", {})),
                remediation=_remediation(config.get("remediation", {})),
                reporting=_reporting(config.get("reporting", {})),
                api=_api(config.get("api", {})),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e


def _threshold_pair(raw: Dict[str, Any], default: ThresholdPair) -> ThresholdPair:
    return ThresholdPair(
        warning=float(raw.get("warning", default.warning)),
        critical=float(raw.get("critical", default.critical)),
    )


def _target(raw: Dict[str, Any], default_response_time: ThresholdPair) -> MonitoredTarget:
    overrides = raw.get("thresholds", {}) or {}
    return MonitoredTarget(
        name=str(raw["name"]),
        url=str(raw["url"]),
        timeout_ms=int(raw.get("timeout_ms", 5000)),
        critical=bool(raw.get("critical", False)),
        response_time=_threshold_pair(overrides.get("response_time", {}), default_response_time),
    )


def _channels(raw: Dict[str, Any]) -> Tuple[ChannelConfig, ...]:
    channels: List[ChannelConfig] = []
    for channel_id, channel in raw.items():
        channels.append(ChannelConfig(
            channel_id=channel_id,
            type=str(channel["type"]),
            enabled=bool(channel.get("enabled", True)),
            severities=tuple(AlertSeverity(s) for s in channel.get("severities", []) or []),
            config=dict(channel.get("config", {}) or {}),
        ))
    return tuple(channels)


def _remediation(raw: Dict[str, Any]) -> RemediationConfig:
    actions = []
    for name, action in (raw.get("actions", {}) or {}).items():
        action = action or {}
        actions.append(RemediationActionConfig(
            name=name,
            enabled=bool(action.get("enabled", True)),
            match=action.get("match"),
            command=action.get("command"),
            timeout_seconds=float(action.get("timeout_seconds", 60)),
        ))
    return RemediationConfig(
        enabled=bool(raw.get("enabled", True)),
        history_size=int(raw.get("history_size", 100)),
        actions=tuple(actions),
    )


def _reporting(raw: Dict[str, Any]) -> ReportingConfig:
    return ReportingConfig(
        enabled=bool(raw.get("enabled", True)),
        interval=float(raw.get("interval", 300)),
        report_dir=str(raw.get("report_dir", "reports/monitoring")),
        retain_reports=int(raw.get("retain_reports", 50)),
    )


def _api(raw: Dict[str, Any]) -> ApiConfig:
    auth = raw.get("authentication", {}) or {}
    return ApiConfig(
        enabled=bool(raw.get("enabled", True)),
        host=str(raw.get("host", "0.0.0.0")),
        port=int(raw.get("port", 8080)),
        debug=bool(raw.get("debug", False)),
        auth_enabled=bool(auth.get("enabled", False)),
        tokens=tuple(auth.get("tokens", []) or []),
        cors_origins=tuple(raw.get("cors", {}).get("origins", ["*"])),
    )
