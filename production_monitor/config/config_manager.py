#!/usr/bin/env python3
"""
Production Monitor - Configuration Management
YAML configuration loading, environment substitution, defaults and validation.
"""

import copy
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

import structlog

from ..core.exceptions import ConfigurationError
from .settings import MonitoringConfig

logger = structlog.get_logger()

ENVIRONMENT_VARIABLE = "PRODUCTION_MONITOR_ENV"

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_CHANNEL_TYPES = ["log", "slack", "webhook", "pagerduty", "email"]
VALID_SEVERITIES = ["warning", "critical"]
VALID_SMOOTHING = ["none", "ewma"]

_ENV_PATTERN = re.compile(r'\$\{([^}]+)\}')


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    path: str                    # Configuration path where error occurred
    message: str                 # Error message
    severity: str = "error"      # error, warning
    suggestion: Optional[str] = None  # Suggested fix


DEFAULTS: Dict[str, Any] = {
    'global': {
        'environment': 'production',
        'log_level': 'INFO',
        'check_interval': 30,
        'metrics_interval': 60,
        'incident_review_interval': 60,
        'incident_threshold': 3,
        'alert_cooldown_ms': 300000,
    },
    'thresholds': {
        'response_time': {'warning': 2000, 'critical': 5000},
        'availability': {'warning': 99.5, 'critical': 99.0},
    },
    'metrics': {
        'response_time_smoothing': 'none',
        'smoothing_alpha': 0.3,
    },
    'targets': [],
    'notifications': {
        'channels': {
            'log': {'type': 'log', 'enabled': True},
        },
    },
    'remediation': {
        'enabled': True,
        'history_size': 100,
        'actions': {
            'clear_cache': {'enabled': True, 'match': 'cache'},
            'restart_service': {'enabled': True},
            'scale_up': {'enabled': True},
        },
    },
    'reporting': {
        'enabled': True,
        'interval': 300,
        'report_dir': 'reports/monitoring',
        'retain_reports': 50,
    },
    'api': {
        'enabled': True,
        'host': '0.0.0.0',
        'port': 8080,
        'debug': False,
    },
}


class ConfigManager:
    """
    Configuration management for the production monitor.

    Features:
    - YAML configuration loading with environment variable substitution
    - Environment-specific override files merged over the main file
    - Default value injection
    - Validation with detailed error reporting
    - Typed MonitoringConfig for the rest of the application
    """

    def __init__(self, config_path: Union[str, Path]):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to primary configuration file
        """
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self.validation_errors: List[ConfigValidationError] = []
        self.environment = os.getenv(ENVIRONMENT_VARIABLE, 'development')
        self._monitoring_config: Optional[MonitoringConfig] = None

        logger.info("ConfigManager initialized",
                    config_path=str(self.config_path),
                    environment=self.environment)

    async def load_config(self) -> bool:
        """
        Load configuration from file with validation.

        Returns:
            True if loading successful, False otherwise
        """
        try:
            logger.info("Loading configuration", config_path=str(self.config_path))

            if not self.config_path.exists():
                logger.error("Configuration file not found", path=str(self.config_path))
                return False

            with open(self.config_path, 'r') as f:
                raw_config = yaml.safe_load(f)

            if not raw_config or not isinstance(raw_config, dict):
                logger.error("Configuration file is empty or invalid")
                return False

            config = self._substitute_environment_variables(raw_config)
            config = self._deep_merge(config, self._load_environment_overrides())
            self.config = self._apply_defaults(config)

            if not self._validate_config():
                logger.error("Configuration validation failed",
                             errors=[f"{e.path}: {e.message}" for e in self.validation_errors
                                     if e.severity == 'error'])
                return False

            self._monitoring_config = MonitoringConfig.from_dict(self.config)

            logger.info("Configuration loaded successfully",
                        sections=list(self.config.keys()),
                        targets=len(self._monitoring_config.targets))
            return True

        except yaml.YAMLError as e:
            logger.error("YAML parsing error", error=str(e))
            return False
        except ConfigurationError as e:
            logger.error("Error building configuration", error=str(e))
            return False

    def get_config(self) -> MonitoringConfig:
        """
        Get the typed configuration.

        Raises:
            ConfigurationError: If no configuration has been loaded successfully
        """
        if self._monitoring_config is None:
            raise ConfigurationError(
                "Configuration not loaded",
                errors=[f"{e.path}: {e.message}" for e in self.validation_errors])
        return self._monitoring_config

    def get_raw_config(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config)

    def get_masked_config(self) -> Dict[str, Any]:
        """Current configuration with sensitive values masked."""
        return self._mask_sensitive_values(self.config)

    def validate_config_file(self, config_path: Path) -> List[ConfigValidationError]:
        """
        Validate a configuration file without loading it.

        Args:
            config_path: Path to configuration file to validate

        Returns:
            List of validation errors
        """
        errors: List[ConfigValidationError] = []
        config_path = Path(config_path)

        if not config_path.exists():
            errors.append(ConfigValidationError(path=str(config_path),
                                                message="Configuration file not found"))
            return errors

        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            errors.append(ConfigValidationError(path=str(config_path),
                                                message=f"YAML parsing error: {str(e)}"))
            return errors

        if not config or not isinstance(config, dict):
            errors.append(ConfigValidationError(path=str(config_path),
                                                message="Configuration file is empty"))
            return errors

        temp_manager = ConfigManager(config_path)
        temp_manager.config = temp_manager._apply_defaults(
            self._substitute_environment_variables(config))
        temp_manager._validate_config()
        errors.extend(temp_manager.validation_errors)
        return errors

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _substitute_environment_variables(self, config: Any) -> Any:
        """
        Substitute environment variables in configuration values.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.
        """
        def replace_env_var(match):
            var_expr = match.group(1)
            if ':' in var_expr:
                var_name, default_value = var_expr.split(':', 1)
                return os.getenv(var_name.strip(), default_value.strip())
            env_value = os.getenv(var_expr.strip())
            if env_value is None:
                logger.warning("Environment variable not found", variable=var_expr.strip())
                return match.group(0)
            return env_value

        if isinstance(config, str):
            return _ENV_PATTERN.sub(replace_env_var, config)
        if isinstance(config, dict):
            return {k: self._substitute_environment_variables(v) for k, v in config.items()}
        if isinstance(config, list):
            return [self._substitute_environment_variables(item) for item in config]
        return config

    def _load_environment_overrides(self) -> Dict[str, Any]:
        """Load <environment>.yaml from the config directory, if present."""
        env_config_file = self.config_path.parent / f"{self.environment}.yaml"
        if not env_config_file.exists() or env_config_file == self.config_path:
            return {}

        try:
            logger.info("Loading environment-specific configuration",
                        env_file=str(env_config_file))
            with open(env_config_file, 'r') as f:
                env_config = yaml.safe_load(f)
            return self._substitute_environment_variables(env_config or {})
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Error loading environment configuration",
                           env_file=str(env_config_file),
                           error=str(e))
            return {}

    def _apply_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge defaults under the loaded configuration (configuration takes precedence).

        Default remediation actions and notification channels apply only when
        the configuration lists none of its own. A listed set replaces them.
        """
        defaults = copy.deepcopy(DEFAULTS)
        remediation = config.get('remediation')
        if isinstance(remediation, dict) and 'actions' in remediation:
            del defaults['remediation']['actions']
        notifications = config.get('notifications')
        if isinstance(notifications, dict) and 'channels' in notifications:
            del defaults['notifications']['channels']
        return self._deep_merge(defaults, config)

    def _validate_config(self) -> bool:
        """
        Validate the loaded configuration.

        Returns:
            True if configuration is valid, False otherwise
        """
        self.validation_errors.clear()

        self._validate_global_config()
        self._validate_thresholds_config()
        self._validate_targets_config()
        self._validate_notifications_config()
        self._validate_remediation_config()
        self._validate_reporting_config()
        self._validate_api_config()

        return len([e for e in self.validation_errors if e.severity == 'error']) == 0

    def _error(self, path: str, message: str, suggestion: Optional[str] = None,
               severity: str = 'error') -> None:
        self.validation_errors.append(ConfigValidationError(
            path=path, message=message, severity=severity, suggestion=suggestion))

    def _validate_global_config(self) -> None:
        """Validate global configuration section."""
        global_config = self.config.get('global', {})

        for key in ('check_interval', 'metrics_interval', 'incident_review_interval'):
            value = global_config.get(key)
            if not _is_number(value) or value < 1:
                self._error(f'global.{key}', f'{key} must be a number >= 1',
                            suggestion='Set to at least 1 second')

        threshold = global_config.get('incident_threshold')
        if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 1:
            self._error('global.incident_threshold', 'incident_threshold must be an integer >= 1')

        cooldown = global_config.get('alert_cooldown_ms')
        if not isinstance(cooldown, int) or isinstance(cooldown, bool) or cooldown < 0:
            self._error('global.alert_cooldown_ms', 'alert_cooldown_ms must be an integer >= 0')

        if global_config.get('log_level') not in VALID_LOG_LEVELS:
            self._error('global.log_level',
                        f'log_level must be one of: {", ".join(VALID_LOG_LEVELS)}')

    def _validate_thresholds_config(self) -> None:
        """Validate global thresholds and the metrics smoothing policy."""
        thresholds = self.config.get('thresholds', {})
        self._validate_response_time(thresholds.get('response_time'), 'thresholds.response_time')

        availability = thresholds.get('availability') or {}
        warning, critical = availability.get('warning'), availability.get('critical')
        if not (_is_number(warning) and _is_number(critical)):
            self._error('thresholds.availability', 'availability warning and critical must be numbers')
        elif not (0 <= critical <= warning <= 100):
            self._error('thresholds.availability',
                        'availability thresholds must satisfy 0 <= critical <= warning <= 100')

        metrics = self.config.get('metrics', {})
        if metrics.get('response_time_smoothing') not in VALID_SMOOTHING:
            self._error('metrics.response_time_smoothing',
                        f'response_time_smoothing must be one of: {", ".join(VALID_SMOOTHING)}')
        alpha = metrics.get('smoothing_alpha')
        if not _is_number(alpha) or not 0 < alpha <= 1:
            self._error('metrics.smoothing_alpha', 'smoothing_alpha must be in (0, 1]')

    def _validate_response_time(self, pair: Any, path: str) -> None:
        if not isinstance(pair, dict):
            self._error(path, 'response_time thresholds must be a mapping')
            return
        warning, critical = pair.get('warning'), pair.get('critical')
        if not (_is_number(warning) and _is_number(critical)):
            self._error(path, 'response_time warning and critical must be numbers')
        elif not 0 < warning <= critical:
            self._error(path, 'response_time thresholds must satisfy 0 < warning <= critical')

    def _validate_targets_config(self) -> None:
        """Validate monitored targets."""
        targets = self.config.get('targets')

        if not isinstance(targets, list) or not targets:
            self._error('targets', 'At least one target must be configured',
                        suggestion='Add a target with name and url')
            return

        seen = set()
        for index, target in enumerate(targets):
            path = f'targets[{index}]'
            if not isinstance(target, dict):
                self._error(path, 'Target configuration must be a dictionary')
                continue

            name = target.get('name')
            if not name or not isinstance(name, str):
                self._error(f'{path}.name', 'Target name is required')
            elif name in seen:
                self._error(f'{path}.name', f'Duplicate target name: {name}')
            else:
                seen.add(name)

            url = target.get('url')
            if not isinstance(url, str) or not url.startswith(('http://', 'https://')):
                self._error(f'{path}.url', 'Target url must be an http:// or https:// URL')

            timeout = target.get('timeout_ms', 5000)
            if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout < 1:
                self._error(f'{path}.timeout_ms', 'timeout_ms must be a positive integer')

            if not isinstance(target.get('critical', False), bool):
                self._error(f'{path}.critical', 'critical must be a boolean')

            overrides = target.get('thresholds')
            if overrides and 'response_time' in overrides:
                merged = dict(self.config.get('thresholds', {}).get('response_time', {}))
                merged.update(overrides.get('response_time') or {})
                self._validate_response_time(merged, f'{path}.thresholds.response_time')

    def _validate_notifications_config(self) -> None:
        """Validate notification channels."""
        channels = self.config.get('notifications', {}).get('channels', {})
        if not isinstance(channels, dict):
            self._error('notifications.channels', 'channels must be a mapping of id to channel')
            return

        for channel_id, channel in channels.items():
            path = f'notifications.channels.{channel_id}'
            if not isinstance(channel, dict):
                self._error(path, 'Channel configuration must be a dictionary')
                continue

            channel_type = channel.get('type')
            if channel_type not in VALID_CHANNEL_TYPES:
                self._error(f'{path}.type',
                            f'Channel type must be one of: {", ".join(VALID_CHANNEL_TYPES)}')
                continue

            for severity in channel.get('severities', []) or []:
                if severity not in VALID_SEVERITIES:
                    self._error(f'{path}.severities', f'Unknown severity: {severity}')

            if not channel.get('enabled', True):
                continue

            settings = channel.get('config', {}) or {}
            required = {
                'slack': ['webhook_url'],
                'webhook': ['url'],
                'pagerduty': ['routing_key'],
                'email': ['smtp_host', 'from_address', 'recipients'],
            }.get(channel_type, [])
            for key in required:
                if not settings.get(key):
                    self._error(f'{path}.config.{key}', f'{channel_type} {key} is required')

    def _validate_remediation_config(self) -> None:
        """Validate remediation actions."""
        remediation = self.config.get('remediation', {})
        actions = remediation.get('actions', {})
        if not isinstance(actions, dict):
            self._error('remediation.actions', 'actions must be a mapping of name to action')
            return

        for name, action in actions.items():
            if not isinstance(action, dict):
                continue
            timeout = action.get('timeout_seconds', 60)
            if not _is_number(timeout) or timeout <= 0:
                self._error(f'remediation.actions.{name}.timeout_seconds',
                            'timeout_seconds must be a positive number')

        history_size = remediation.get('history_size')
        if not _is_integer(history_size) or history_size < 1:
            self._error('remediation.history_size', 'history_size must be an integer >= 1')

        if not remediation.get('enabled', True):
            self._error('remediation.enabled', 'Auto-remediation is disabled', severity='warning')

    def _validate_reporting_config(self) -> None:
        """Validate status reporting configuration."""
        reporting = self.config.get('reporting', {})

        interval = reporting.get('interval')
        if not _is_number(interval) or interval < 1:
            self._error('reporting.interval', 'interval must be a number >= 1',
                        suggestion='Set to at least 1 second')

        retain_reports = reporting.get('retain_reports')
        if not _is_integer(retain_reports) or retain_reports < 1:
            self._error('reporting.retain_reports', 'retain_reports must be an integer >= 1')

        report_dir = reporting.get('report_dir')
        if not isinstance(report_dir, str) or not report_dir:
            self._error('reporting.report_dir', 'report_dir must be a non-empty string')

    def _validate_api_config(self) -> None:
        """Validate API configuration section."""
        api_config = self.config.get('api', {})

        port = api_config.get('port', 8080)
        if not isinstance(port, int) or port < 1 or port > 65535:
            self._error('api.port', 'API port must be an integer between 1 and 65535')

        host = api_config.get('host', '0.0.0.0')
        if not isinstance(host, str) or not host:
            self._error('api.host', 'API host must be a non-empty string')

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _mask_sensitive_values(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Mask sensitive configuration values.

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with sensitive values masked
        """
        sensitive_keys = {
            'password', 'passwd', 'token', 'secret', 'webhook_url',
            'routing_key', 'integration_key', 'auth_token'
        }

        def mask_dict(data):
            if isinstance(data, dict):
                result = {}
                for k, v in data.items():
                    if any(sensitive in str(k).lower() for sensitive in sensitive_keys):
                        result[k] = "***MASKED***" if v else v
                    else:
                        result[k] = mask_dict(v)
                return result
            elif isinstance(data, list):
                return [mask_dict(item) for item in data]
            else:
                return data

        return mask_dict(config)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
