#!/usr/bin/env python3
"""
Production Monitor - Main Application Entry Point
Primary executable for starting and managing the monitoring engine.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from . import __version__
from .api.rest_server import RestAPIServer
from .config.config_manager import ConfigManager
from .core.monitoring_session import MonitoringSession
from .core.notifier import Notifier, build_notifier
from .reporting.status_reporter import StatusReporter

logger = structlog.get_logger()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure stdlib logging and structlog.

    JSON output by default; the console renderer is used at DEBUG level.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger().setLevel(level)

    renderer = (structlog.dev.ConsoleRenderer() if level == logging.DEBUG
                else structlog.processors.JSONRenderer())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ProductionMonitor:
    """
    Main application class.
    Wires configuration, notifier, monitoring session, reporter and API together.
    """

    def __init__(self, config_path: str, log_level: Optional[str] = None):
        """
        Args:
            config_path: Path to configuration file
            log_level: Overrides global.log_level from the configuration
        """
        self.config_path = Path(config_path)
        self.log_level = log_level

        self.config_manager: Optional[ConfigManager] = None
        self.notifier: Optional[Notifier] = None
        self.session: Optional[MonitoringSession] = None
        self.reporter: Optional[StatusReporter] = None
        self.api_server: Optional[RestAPIServer] = None

        self.running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._api_task: Optional[asyncio.Task] = None

    async def initialize(self) -> bool:
        """
        Load configuration and build all components.

        Returns:
            True if initialization successful, False otherwise
        """
        logger.info("Loading configuration", config_path=str(self.config_path))
        self.config_manager = ConfigManager(self.config_path)
        if not await self.config_manager.load_config():
            logger.error("Failed to load configuration")
            return False

        config = self.config_manager.get_config()
        configure_logging(self.log_level or config.log_level)

        try:
            self.notifier = build_notifier(config.notification_channels)
        except (KeyError, ValueError) as e:
            logger.error("Failed to build notification channels", error=str(e))
            return False

        if config.reporting.enabled:
            self.reporter = StatusReporter(config.reporting, environment=config.environment)

        self.session = MonitoringSession(config, notifier=self.notifier, reporter=self.reporter)

        if config.api.enabled:
            self.api_server = RestAPIServer(self.session, config.api,
                                            config_manager=self.config_manager)

        logger.info("Production monitor initialized",
                    environment=config.environment,
                    targets=[target.name for target in config.targets],
                    channels=len(self.notifier.channels),
                    api_enabled=config.api.enabled)
        return True

    async def start(self) -> None:
        """Start monitoring (and the API server) and run until stop() is called."""
        if self.running:
            logger.warning("Application is already running")
            return

        self.running = True
        self._stop_event = asyncio.Event()
        await self.session.start()

        if self.api_server:
            self._api_task = asyncio.create_task(self.api_server.start())

        logger.info("Production monitor started")
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Stop the application gracefully."""
        if not self.running:
            return
        self.running = False
        logger.info("Stopping production monitor")

        if self.api_server:
            await self.api_server.stop()
        if self._api_task:
            try:
                await asyncio.wait_for(self._api_task, timeout=5)
            except asyncio.TimeoutError:
                self._api_task.cancel()
            except Exception as e:
                logger.error("Error stopping REST API server", error=str(e))

        await self.session.cleanup()
        if self._stop_event:
            self._stop_event.set()
        logger.info("Production monitor stopped")

    async def run_once(self) -> Dict[str, Any]:
        """
        Run one health-check cycle, one incident review and one metrics collection.

        Returns:
            The status snapshot after the cycle
        """
        try:
            await self.session.run_cycle()
            await self.session.review_incidents()
            await self.session.collect_metrics()
            await self.session.wait_for_remediation()
            if self.reporter:
                await self.reporter.write_status_report(self.session)
            return self.session.get_status()
        finally:
            await self.session.cleanup()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="production-monitor",
        description="Production health monitoring and incident response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config config/config.yaml
  %(prog)s --config config/config.yaml --log-level DEBUG
  %(prog)s --config config/config.yaml --validate-only
  %(prog)s --config config/config.yaml --once
        """
    )

    parser.add_argument(
        '--config', '-c',
        required=True,
        help='Path to configuration file'
    )

    parser.add_argument(
        '--log-level', '-l',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Override the configured logging level'
    )

    parser.add_argument(
        '--validate-only',
        action='store_true',
        help='Validate configuration and exit'
    )

    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single health-check cycle, print the status and exit'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Production Monitor v{__version__}'
    )
    return parser


async def main(argv=None) -> int:
    """Main entry point for the production monitor."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or "INFO")

    if args.validate_only:
        errors = ConfigManager(args.config).validate_config_file(Path(args.config))
        for error in errors:
            log = logger.error if error.severity == "error" else logger.warning
            log("Configuration problem", path=error.path, message=error.message,
                suggestion=error.suggestion)
        if any(error.severity == "error" for error in errors):
            logger.error("Configuration validation failed")
            return 1
        logger.info("Configuration validation successful")
        return 0

    app = ProductionMonitor(config_path=args.config, log_level=args.log_level)
    if not await app.initialize():
        logger.error("Failed to initialize production monitor")
        return 1

    if args.once:
        status = await app.run_once()
        print(json.dumps(status, indent=2))
        return 0

    def signal_handler():
        logger.info("Received shutdown signal")
        if app.running:
            asyncio.create_task(app.stop())

    loop = asyncio.get_running_loop()
    for sig in [signal.SIGTERM, signal.SIGINT]:
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.start()
    except Exception as e:
        logger.error("Unexpected error", error=str(e), exc_info=True)
        return 1
    finally:
        await app.stop()

    return 0


def cli_main():
    """CLI entry point that handles async main function."""
    return asyncio.run(main())


if __name__ == '__main__':
    sys.exit(cli_main())
