"""Tests for YAML configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from production_monitor.config.config_manager import ConfigManager, ENVIRONMENT_VARIABLE
from production_monitor.core.exceptions import ConfigurationError
from production_monitor.core.models import AlertSeverity, ThresholdPair


def _base_config(**overrides):
    config = {
        'global': {'environment': 'test', 'check_interval': 10},
        'targets': [
            {'name': 'api-gateway', 'url': 'https://api.example.com/health', 'critical': True},
            {'name': 'cache-service', 'url': 'http://cache.internal/health', 'timeout_ms': 2000,
             'thresholds': {'response_time': {'warning': 500, 'critical': 1000}}},
        ],
        'notifications': {
            'channels': {
                'slack': {'type': 'slack', 'severities': ['critical'],
                          'config': {'webhook_url': 'https://hooks.slack.com/services/secret'}},
            },
        },
    }
    config.update(overrides)
    return config


def _write(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
    return _write(tmp_path / "config.yaml", _base_config())


class TestLoading:
    @pytest.mark.asyncio
    async def test_valid_config(self, config_file) -> None:
        manager = ConfigManager(config_file)
        assert await manager.load_config()

        config = manager.get_config()
        assert config.environment == "test"
        assert config.check_interval == 10
        assert config.metrics_interval == 60
        assert config.incident_threshold == 3
        assert config.alert_cooldown_ms == 300000
        assert [t.name for t in config.targets] == ["api-gateway", "cache-service"]

    @pytest.mark.asyncio
    async def test_per_target_threshold_override(self, config_file) -> None:
        manager = ConfigManager(config_file)
        await manager.load_config()
        config = manager.get_config()

        gateway = config.get_target("api-gateway")
        cache = config.get_target("cache-service")
        assert gateway.critical is True
        assert gateway.response_time == ThresholdPair(2000, 5000)
        assert cache.critical is False
        assert cache.timeout_ms == 2000
        assert cache.response_time == ThresholdPair(500, 1000)

    @pytest.mark.asyncio
    async def test_channels_and_default_remediation(self, config_file) -> None:
        manager = ConfigManager(config_file)
        await manager.load_config()
        config = manager.get_config()

        channels = {c.channel_id: c for c in config.notification_channels}
        assert set(channels) == {"slack"}
        assert channels["slack"].severities == (AlertSeverity.CRITICAL,)
        assert [a.name for a in config.remediation.actions] == [
            "clear_cache", "restart_service", "scale_up"]

    @pytest.mark.asyncio
    async def test_default_log_channel_when_none_listed(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        data = _base_config()
        del data['notifications']
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert await manager.load_config()
        assert [c.channel_id for c in manager.get_config().notification_channels] == ["log"]

    @pytest.mark.asyncio
    async def test_listed_actions_replace_defaults(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        data = _base_config(remediation={'actions': {
            'flush_dns': {'command': 'echo flush {service}', 'timeout_seconds': 5}}})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert await manager.load_config()

        remediation = manager.get_config().remediation
        assert [a.name for a in remediation.actions] == ["flush_dns"]
        assert remediation.enabled is True
        assert remediation.history_size == 100

    @pytest.mark.asyncio
    async def test_environment_substitution(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        monkeypatch.setenv("API_HOST", "api.staging.internal")
        data = _base_config(targets=[
            {'name': 'api', 'url': 'https://${API_HOST}/health'},
            {'name': 'db', 'url': '${DB_URL:http://db.internal/health}'},
        ])
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert await manager.load_config()

        urls = [t.url for t in manager.get_config().targets]
        assert urls == ["https://api.staging.internal/health", "http://db.internal/health"]

    @pytest.mark.asyncio
    async def test_environment_override_file(self, config_file, monkeypatch) -> None:
        monkeypatch.setenv(ENVIRONMENT_VARIABLE, "staging")
        _write(config_file.parent / "staging.yaml",
               {'global': {'check_interval': 5, 'environment': 'staging'}})

        manager = ConfigManager(config_file)
        assert await manager.load_config()
        config = manager.get_config()
        assert config.check_interval == 5
        assert config.environment == "staging"
        assert len(config.targets) == 2

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path) -> None:
        manager = ConfigManager(tmp_path / "missing.yaml")
        assert not await manager.load_config()
        with pytest.raises(ConfigurationError):
            manager.get_config()

    @pytest.mark.asyncio
    async def test_malformed_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("targets: [unclosed")
        assert not await ConfigManager(path).load_config()


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("targets", [
        [],
        [{'name': 'api', 'url': 'ftp://api.example.com'}],
        [{'name': 'api', 'url': 'http://a/health'}, {'name': 'api', 'url': 'http://b/health'}],
        [{'name': 'api', 'url': 'http://a/health', 'timeout_ms': 0}],
    ])
    async def test_invalid_targets(self, tmp_path, targets) -> None:
        manager = ConfigManager(_write(tmp_path / "config.yaml", _base_config(targets=targets)))
        assert not await manager.load_config()
        assert any(e.path.startswith("targets") for e in manager.validation_errors)
        with pytest.raises(ConfigurationError):
            manager.get_config()

    @pytest.mark.asyncio
    async def test_invalid_thresholds(self, tmp_path) -> None:
        data = _base_config(thresholds={'response_time': {'warning': 5000, 'critical': 2000}})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert not await manager.load_config()
        assert [e.path for e in manager.validation_errors] == ["thresholds.response_time"]

    @pytest.mark.asyncio
    async def test_channel_requires_settings(self, tmp_path) -> None:
        data = _base_config(notifications={'channels': {'pd': {'type': 'pagerduty'}}})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert not await manager.load_config()
        assert manager.validation_errors[0].path == "notifications.channels.pd.config.routing_key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reporting, path", [
        ({'interval': 0}, "reporting.interval"),
        ({'interval': 'hourly'}, "reporting.interval"),
        ({'retain_reports': 0}, "reporting.retain_reports"),
        ({'retain_reports': 2.5}, "reporting.retain_reports"),
        ({'report_dir': ''}, "reporting.report_dir"),
    ])
    async def test_invalid_reporting(self, tmp_path, reporting, path) -> None:
        manager = ConfigManager(_write(tmp_path / "config.yaml", _base_config(reporting=reporting)))
        assert not await manager.load_config()
        assert [e.path for e in manager.validation_errors] == [path]

    @pytest.mark.asyncio
    async def test_invalid_history_size(self, tmp_path) -> None:
        data = _base_config(remediation={'history_size': 0})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert not await manager.load_config()
        assert [e.path for e in manager.validation_errors] == ["remediation.history_size"]

    @pytest.mark.asyncio
    async def test_disabled_remediation_is_a_warning(self, tmp_path) -> None:
        data = _base_config(remediation={'enabled': False})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert await manager.load_config()
        assert [e.severity for e in manager.validation_errors] == ["warning"]

    def test_validate_config_file(self, tmp_path, config_file) -> None:
        manager = ConfigManager(config_file)
        assert manager.validate_config_file(config_file) == []

        bad = _write(tmp_path / "bad.yaml", _base_config(targets=[]))
        errors = manager.validate_config_file(bad)
        assert [e.path for e in errors] == ["targets"]

        errors = manager.validate_config_file(tmp_path / "nope.yaml")
        assert errors[0].message == "Configuration file not found"


class TestMasking:
    @pytest.mark.asyncio
    async def test_sensitive_values_masked(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
        data = _base_config(api={'authentication': {'enabled': True, 'tokens': [
            {'token': 'abc123', 'user': 'ops', 'permissions': ['read']}]}})
        manager = ConfigManager(_write(tmp_path / "config.yaml", data))
        assert await manager.load_config()

        masked = manager.get_masked_config()
        slack = masked['notifications']['channels']['slack']['config']
        assert slack['webhook_url'] == "***MASKED***"
        assert masked['api']['authentication']['tokens'] == "***MASKED***"
        assert manager.get_raw_config()['notifications']['channels']['slack']['config'][
            'webhook_url'].startswith("https://")
