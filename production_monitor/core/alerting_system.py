#!/usr/bin/env python3
"""
Production Monitor - Alert Manager
Turns breaches into deduplicated, cooldown-gated alert records and hands them to the notifier.

Deduplication is keyed on AlertSignature (target + category). While a
cooldown entry for a signature is active, new alerts with that signature
are suppressed with no side effect. Cooldown entries expire lazily on
lookup and are swept once per monitoring cycle.
"""

import asyncio
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Set

import structlog

from .models import (
    Alert, AlertCooldownEntry, AlertSeverity, AlertSignature, Breach,
    SYSTEM_TARGET, generate_id, utcnow
)


class AlertManager:
    """
    Alert store with cooldown-based suppression.

    The alert list is append-only. acknowledge() and resolve() only flip the
    corresponding flag. Notifications run as background tasks so a slow or
    failing channel never delays alert creation.
    """

    def __init__(self, cooldown_ms: int, notifier=None, clock: Callable = utcnow):
        """
        Initialize the alert manager.

        Args:
            cooldown_ms: Suppression window per signature, in milliseconds
            notifier: Object with an async dispatch(alert) method, or None
            clock: Returns the current timezone-aware time
        """
        self.cooldown = timedelta(milliseconds=cooldown_ms)
        self.notifier = notifier
        self._clock = clock

        self._alerts: List[Alert] = []
        self._alerts_by_id: Dict[str, Alert] = {}
        self._cooldowns: Dict[AlertSignature, AlertCooldownEntry] = {}
        self._pending: Set[asyncio.Task] = set()

        self.suppressed_count = 0
        self.logger = structlog.get_logger().bind(component="alert_manager")

    # -------------------------------------------------------------------------
    # ALERT CREATION
    # -------------------------------------------------------------------------

    def raise_breach(self, breach: Breach) -> Optional[Alert]:
        """Create an alert for a threshold breach, unless its signature is cooling down."""
        if breach.target_name:
            context_type, context_id = "target", breach.target_name
        else:
            context_type, context_id = "system", SYSTEM_TARGET

        return self.raise_alert(breach.severity, breach.message, breach.signature,
                                context_type=context_type, context_id=context_id)

    def raise_alert(self, severity: AlertSeverity, message: str, signature: AlertSignature,
                    context_type: Optional[str] = None,
                    context_id: Optional[str] = None) -> Optional[Alert]:
        """
        Create an alert unless an unexpired cooldown exists for its signature.

        Args:
            severity: Alert severity
            message: Human-readable alert message
            signature: Deduplication key
            context_type: "target", "incident" or "system"
            context_id: Target name or incident id

        Returns:
            The new alert, or None if suppressed
        """
        now = self._clock()

        if self.is_suppressed(signature, now):
            self.suppressed_count += 1
            self.logger.debug("alert_suppressed", signature=str(signature), message=message)
            return None

        alert = Alert(
            id=generate_id(),
            severity=severity,
            message=message,
            signature=signature,
            created_at=now,
            context_type=context_type,
            context_id=context_id,
        )
        self._alerts.append(alert)
        self._alerts_by_id[alert.id] = alert
        self._cooldowns[signature] = AlertCooldownEntry(signature=signature,
                                                        expires_at=now + self.cooldown)

        self.logger.warning("alert_created",
                            alert_id=alert.id,
                            severity=severity.value,
                            signature=str(signature),
                            message=message)

        self._schedule_notification(alert)
        return alert

    def is_suppressed(self, signature: AlertSignature, now=None) -> bool:
        """Check the cooldown for a signature, dropping the entry if it has expired."""
        entry = self._cooldowns.get(signature)
        if entry is None:
            return False
        if entry.is_active(now or self._clock()):
            return True
        del self._cooldowns[signature]
        return False

    def sweep_expired(self) -> int:
        """
        Drop all expired cooldown entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [sig for sig, entry in self._cooldowns.items() if not entry.is_active(now)]
        for signature in expired:
            del self._cooldowns[signature]
        if expired:
            self.logger.debug("cooldowns_swept", removed=len(expired))
        return len(expired)

    # -------------------------------------------------------------------------
    # ALERT STATE
    # -------------------------------------------------------------------------

    def acknowledge(self, alert_id: str) -> bool:
        """
        Mark an alert as acknowledged. Idempotent.

        Returns:
            True if the alert exists, False otherwise
        """
        alert = self._alerts_by_id.get(alert_id)
        if alert is None:
            self.logger.warning("alert_not_found", alert_id=alert_id, operation="acknowledge")
            return False
        if not alert.acknowledged:
            alert.acknowledged = True
            self.logger.info("alert_acknowledged", alert_id=alert_id)
        return True

    def resolve(self, alert_id: str) -> bool:
        """
        Mark an alert as resolved. Idempotent.

        Returns:
            True if the alert exists, False otherwise
        """
        alert = self._alerts_by_id.get(alert_id)
        if alert is None:
            self.logger.warning("alert_not_found", alert_id=alert_id, operation="resolve")
            return False
        if not alert.resolved:
            alert.resolved = True
            self.logger.info("alert_resolved", alert_id=alert_id)
        return True

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        alert = self._alerts_by_id.get(alert_id)
        return alert.copy() if alert else None

    def alerts(self) -> List[Alert]:
        """Copies of all alerts, oldest first."""
        return [alert.copy() for alert in self._alerts]

    def active_count(self) -> int:
        return sum(1 for alert in self._alerts if not alert.resolved)

    def cooldown_count(self) -> int:
        return len(self._cooldowns)

    # -------------------------------------------------------------------------
    # NOTIFICATION
    # -------------------------------------------------------------------------

    def _schedule_notification(self, alert: Alert) -> None:
        if self.notifier is None:
            return
        task = asyncio.get_running_loop().create_task(self._notify(alert.copy()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _notify(self, alert: Alert) -> None:
        try:
            await self.notifier.dispatch(alert)
        except Exception as e:
            self.logger.error("notifier_failure", alert_id=alert.id, error=str(e))

    async def wait_for_notifications(self) -> None:
        """Wait for all in-flight notification dispatches to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
