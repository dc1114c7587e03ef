#!/usr/bin/env python3
"""
Production Monitor - Remediation Dispatcher
Best-effort corrective actions for unhealthy critical targets.

Actions run sequentially per target and are isolated from each other: a
failing action is logged and the next one still runs. Nothing raised by an
action escapes the dispatcher. There is no verification step; the next
health-check cycle re-evaluates the target.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Optional

import structlog

from ..config.settings import RemediationActionConfig, RemediationConfig
from ..core.exceptions import RemediationError
from ..core.models import MonitoredTarget, generate_id, utcnow

MAX_OUTPUT_CHARS = 2000


@dataclass
class RemediationAttempt:
    """Record of a single remediation action run against a target."""
    id: str
    target: str
    action: str
    started_at: datetime
    duration_seconds: float = 0.0
    success: bool = False
    exit_code: Optional[int] = None
    output: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target": self.target,
            "action": self.action,
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "success": self.success,
            "exit_code": self.exit_code,
            "output": self.output,
            "error": self.error,
        }


class RemediationDispatcher:
    """
    Runs the configured remediation actions for a target.

    An action applies to a target when it is enabled and its `match`
    pattern (if any) is a case-insensitive substring of the target name.
    Actions with a `command` run it in a shell with `{service}` replaced by
    the target name; actions without one are logged only.
    """

    def __init__(self, config: Optional[RemediationConfig] = None):
        self.config = config or RemediationConfig()
        self._history: Deque[RemediationAttempt] = deque(maxlen=max(1, self.config.history_size))
        self.logger = structlog.get_logger().bind(component="remediation")

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def actions_for(self, target: MonitoredTarget) -> List[RemediationActionConfig]:
        """Enabled actions that apply to the given target, in configuration order."""
        name = target.name.lower()
        return [
            action for action in self.config.actions
            if action.enabled and (not action.match or action.match.lower() in name)
        ]

    async def remediate(self, target: MonitoredTarget) -> List[RemediationAttempt]:
        """
        Run every applicable action for one target.

        Args:
            target: Unhealthy critical target

        Returns:
            One attempt record per action run
        """
        if not self.enabled:
            return []

        actions = self.actions_for(target)
        self.logger.info("remediation_started", target=target.name,
                         actions=[action.name for action in actions])

        attempts = []
        for action in actions:
            attempt = await self._run_action(target, action)
            attempts.append(attempt)
            self._history.append(attempt)

        self.logger.info("remediation_completed", target=target.name,
                         succeeded=sum(1 for a in attempts if a.success),
                         failed=sum(1 for a in attempts if not a.success))
        return attempts

    async def remediate_all(self, targets: Iterable[MonitoredTarget]) -> List[RemediationAttempt]:
        """Remediate targets one after another."""
        attempts = []
        for target in targets:
            attempts.extend(await self.remediate(target))
        return attempts

    def history(self, limit: Optional[int] = None) -> List[RemediationAttempt]:
        """Recorded attempts, newest last."""
        attempts = list(self._history)
        if limit is not None:
            attempts = attempts[-limit:] if limit > 0 else []
        return attempts

    # -------------------------------------------------------------------------
    # ACTION EXECUTION
    # -------------------------------------------------------------------------

    async def _run_action(self, target: MonitoredTarget,
                          action: RemediationActionConfig) -> RemediationAttempt:
        attempt = RemediationAttempt(id=generate_id(), target=target.name,
                                     action=action.name, started_at=utcnow())
        start_time = time.monotonic()
        try:
            if action.command:
                await self._execute_command(action, target, attempt)
            else:
                self.logger.info("remediation_action_logged", target=target.name, action=action.name)
            attempt.success = True
        except asyncio.CancelledError:
            raise
        except RemediationError as e:
            attempt.error = e.reason
            self.logger.error("remediation_action_failed", target=target.name,
                              action=action.name, error=e.reason)
        except Exception as e:
            attempt.error = str(e) or e.__class__.__name__
            self.logger.exception("remediation_action_failed", target=target.name,
                                  action=action.name, error=attempt.error)
        finally:
            attempt.duration_seconds = time.monotonic() - start_time
        return attempt

    async def _execute_command(self, action: RemediationActionConfig, target: MonitoredTarget,
                               attempt: RemediationAttempt) -> None:
        command = action.command.replace("{service}", target.name)
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(),
                                                    timeout=action.timeout_seconds)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise RemediationError(action.name,
                                   f"Command timed out after {action.timeout_seconds} seconds")

        attempt.exit_code = process.returncode
        attempt.output = (stdout.decode(errors="replace")
                          + stderr.decode(errors="replace"))[-MAX_OUTPUT_CHARS:]

        if process.returncode != 0:
            raise RemediationError(action.name,
                                   f"Command failed with exit code {process.returncode}")
