#!/usr/bin/env python3
"""
Production Monitor - Health Registry
Latest observed state per monitored target.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping

import structlog

from .models import HealthCheckResult, MonitoredTarget, TargetHealth, utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegistrySnapshot:
    """Cycle-consistent, read-only copy of the registry."""
    cycle: int
    taken_at: datetime
    entries: Dict[str, TargetHealth] = field(default_factory=dict)

    def get(self, name: str) -> TargetHealth:
        return self.entries[name]

    def values(self) -> List[TargetHealth]:
        return list(self.entries.values())


class HealthRegistry:
    """
    Holds the current HealthCheckResult, failure streak and last error per target.

    Entries are immutable TargetHealth values. apply_results() builds the whole
    next generation before swapping it in, so a snapshot never mixes results
    from two cycles.
    """

    def __init__(self, targets: Iterable[MonitoredTarget]):
        self._entries: Dict[str, TargetHealth] = {
            target.name: TargetHealth(target_name=target.name) for target in targets
        }
        self._cycle = 0

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def target_names(self) -> List[str]:
        return list(self._entries.keys())

    def get(self, name: str) -> TargetHealth:
        return self._entries[name]

    def apply_result(self, name: str, result: HealthCheckResult) -> TargetHealth:
        """Apply a single probe result outside of a full cycle."""
        entry = self._next_entry(self._entries[name], result)
        entries = dict(self._entries)
        entries[name] = entry
        self._entries = entries
        return entry

    def apply_results(self, results: Mapping[str, HealthCheckResult]) -> RegistrySnapshot:
        """
        Apply one cycle of probe results.

        Args:
            results: Probe result per target name

        Returns:
            Snapshot of the registry after the cycle

        Raises:
            KeyError: If a result names an unregistered target
        """
        unknown = [name for name in results if name not in self._entries]
        if unknown:
            raise KeyError(f"Unknown targets: {', '.join(unknown)}")

        entries = dict(self._entries)
        for name, result in results.items():
            entries[name] = self._next_entry(entries[name], result)

        self._entries = entries
        self._cycle += 1
        logger.debug("registry_cycle_applied", cycle=self._cycle, results=len(results))
        return self.snapshot()

    def snapshot(self) -> RegistrySnapshot:
        # Entries are frozen, a shallow copy of the map is enough.
        return RegistrySnapshot(cycle=self._cycle, taken_at=utcnow(), entries=dict(self._entries))

    @staticmethod
    def _next_entry(current: TargetHealth, result: HealthCheckResult) -> TargetHealth:
        if result.healthy:
            return TargetHealth(target_name=current.target_name, result=result,
                                consecutive_failures=0, last_error=None)
        return TargetHealth(target_name=current.target_name, result=result,
                            consecutive_failures=current.consecutive_failures + 1,
                            last_error=result.error)
