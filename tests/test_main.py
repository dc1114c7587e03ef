"""Tests for the command-line entry point and application wiring."""

import json

import pytest
import yaml

from production_monitor.agents.probe_scheduler import ProbeScheduler
from production_monitor.config.config_manager import ENVIRONMENT_VARIABLE
from production_monitor.main import ProductionMonitor, build_parser, main
from tests.helpers import ScriptedProber, fail, ok


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
    config = {
        'global': {'environment': 'test'},
        'targets': [
            {'name': 'api', 'url': 'http://api.internal/health', 'critical': True},
            {'name': 'batch', 'url': 'http://batch.internal/health'},
        ],
        'remediation': {'enabled': False},
        'reporting': {'report_dir': str(tmp_path / "reports")},
        'api': {'enabled': False},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


class TestParser:
    def test_arguments(self) -> None:
        args = build_parser().parse_args(["-c", "config.yaml", "--once", "-l", "DEBUG"])
        assert args.config == "config.yaml"
        assert args.once
        assert args.log_level == "DEBUG"
        assert not args.validate_only

    def test_config_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestValidateOnly:
    @pytest.mark.asyncio
    async def test_valid(self, config_path) -> None:
        assert await main(["--config", str(config_path), "--validate-only"]) == 0

    @pytest.mark.asyncio
    async def test_invalid(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({'targets': []}))
        assert await main(["--config", str(path), "--validate-only"]) == 1


class TestProductionMonitor:
    @pytest.mark.asyncio
    async def test_initialize(self, config_path) -> None:
        app = ProductionMonitor(str(config_path))
        assert await app.initialize()
        assert app.session is not None
        assert app.reporter is not None
        assert app.api_server is None
        assert [c.channel_id for c in app.notifier.channels] == ["log"]
        await app.session.cleanup()

    @pytest.mark.asyncio
    async def test_initialize_fails_on_missing_config(self, tmp_path) -> None:
        app = ProductionMonitor(str(tmp_path / "missing.yaml"))
        assert not await app.initialize()

    @pytest.mark.asyncio
    async def test_run_once(self, config_path, tmp_path) -> None:
        app = ProductionMonitor(str(config_path))
        assert await app.initialize()
        prober = ScriptedProber()
        prober.set("api", ok(80))
        prober.set("batch", fail())
        app.session.scheduler = ProbeScheduler(prober)

        status = await app.run_once()

        assert status["availability"] == 50.0
        assert {s["name"] for s in status["services"]} == {"api", "batch"}
        assert json.dumps(status)
        assert prober.closed
        assert len(list((tmp_path / "reports").glob("status-*.json"))) == 1
