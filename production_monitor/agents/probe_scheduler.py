#!/usr/bin/env python3
"""
Production Monitor - Probe Scheduler
Concurrent, timeout-bounded HTTP health probes for all monitored targets.

Every probe is independent: a slow or failing target never blocks or
cancels its siblings, and a failed probe is returned as an unhealthy
HealthCheckResult instead of raising.
"""

import asyncio
import time
from typing import Dict, Iterable, Optional

import aiohttp
import structlog

from .. import __version__
from ..core.exceptions import ProbeFailure
from ..core.models import HealthCheckResult, MonitoredTarget

logger = structlog.get_logger()

USER_AGENT = f"production-monitor/{__version__}"


class HttpProber:
    """
    Issues a single HTTP GET per check and classifies the outcome.

    A response with a 2xx status arriving before the target's timeout is
    healthy. Any other status, a network error or a timeout is a failure.

    The connector pool is unbounded by default (connection_limit=0): probes
    never queue for a connection slot while their timeout runs.
    """

    def __init__(self, verify_ssl: bool = True, connection_limit: int = 0):
        self.verify_ssl = verify_ssl
        self.connection_limit = connection_limit
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.connection_limit,
                                             ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT},
            )
        return self._session

    async def check(self, target: MonitoredTarget) -> HealthCheckResult:
        """
        Probe one target.

        Args:
            target: Target to probe

        Returns:
            HealthCheckResult: healthy with the measured response time, or
            unhealthy with the failure reason
        """
        start_time = time.monotonic()
        try:
            status_code = await asyncio.wait_for(self._get(target), timeout=target.timeout_seconds)
        except ProbeFailure as e:
            logger.warning("probe_failed", target=target.name, error=e.reason,
                           status_code=e.status_code)
            return HealthCheckResult.failure(e.reason, status_code=e.status_code)
        except asyncio.TimeoutError:
            logger.warning("probe_failed", target=target.name, error="Request timeout")
            return HealthCheckResult.failure("Request timeout")
        except aiohttp.ClientError as e:
            reason = str(e) or e.__class__.__name__
            logger.warning("probe_failed", target=target.name, error=reason)
            return HealthCheckResult.failure(reason)

        response_time_ms = (time.monotonic() - start_time) * 1000
        logger.debug("probe_completed", target=target.name, status_code=status_code,
                     response_time_ms=round(response_time_ms, 1))
        return HealthCheckResult.success(response_time_ms, status_code=status_code)

    async def _get(self, target: MonitoredTarget) -> int:
        session = self._get_session()
        timeout = aiohttp.ClientTimeout(total=target.timeout_seconds)
        async with session.get(target.url, timeout=timeout) as response:
            if not 200 <= response.status < 300:
                raise ProbeFailure(f"HTTP {response.status}: {response.reason}",
                                   status_code=response.status)
            return response.status

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None


class ProbeScheduler:
    """Runs one probe per target concurrently and collects the results by target name."""

    def __init__(self, prober: Optional[HttpProber] = None):
        self.prober = prober or HttpProber()

    async def probe_all(self, targets: Iterable[MonitoredTarget]) -> Dict[str, HealthCheckResult]:
        """
        Probe every target concurrently.

        Args:
            targets: Targets to probe

        Returns:
            Result per target name. Unexpected errors inside a probe are
            reported as unhealthy results for that target only.
        """
        targets = list(targets)
        if not targets:
            return {}

        outcomes = await asyncio.gather(*(self.prober.check(target) for target in targets),
                                        return_exceptions=True)

        results: Dict[str, HealthCheckResult] = {}
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error("probe_error", target=target.name, error=str(outcome))
                outcome = HealthCheckResult.failure(str(outcome) or outcome.__class__.__name__)
            results[target.name] = outcome
        return results

    async def close(self) -> None:
        await self.prober.close()
