#!/usr/bin/env python3
"""
Production Monitor - Notifier
Fans alerts out to notification channels (log, Slack, webhook, PagerDuty, email).

The engine only calls Notifier.dispatch(alert). Each channel is invoked
independently; a failing channel is logged and never stops the others.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional, Set

import aiohttp
import structlog

from .exceptions import NotificationError
from .models import Alert, AlertSeverity

logger = structlog.get_logger()

_SLACK_COLORS = {
    AlertSeverity.CRITICAL: "danger",
    AlertSeverity.WARNING: "warning",
}

PAGERDUTY_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"


def format_subject(alert: Alert) -> str:
    return f"[{alert.severity.value.upper()}] {alert.message}"


def format_body(alert: Alert) -> str:
    lines = [
        f"Severity: {alert.severity.value}",
        f"Message: {alert.message}",
        f"Created: {alert.created_at.isoformat()}",
        f"Alert ID: {alert.id}",
    ]
    if alert.context_type:
        lines.append(f"Context: {alert.context_type} {alert.context_id}")
    return "\n".join(lines)


# =============================================================================
# CHANNELS
# =============================================================================

class NotificationChannel(ABC):
    """
    Base class for alert delivery channels.

    Args:
        channel_id: Identifier from configuration
        severities: Severities this channel accepts (all when empty)
    """

    def __init__(self, channel_id: str, severities: Optional[List[AlertSeverity]] = None):
        self.channel_id = channel_id
        self.severities: Set[AlertSeverity] = set(severities or [])
        self.success_count = 0
        self.failure_count = 0

    def accepts(self, alert: Alert) -> bool:
        return not self.severities or alert.severity in self.severities

    @abstractmethod
    async def send(self, alert: Alert) -> bool:
        """Deliver an alert. Returns True on success."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class HttpChannel(NotificationChannel):
    """Shared aiohttp session handling for webhook-style channels."""

    def __init__(self, channel_id: str, severities: Optional[List[AlertSeverity]] = None,
                 timeout_seconds: float = 10):
        super().__init__(channel_id, severities)
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))
        return self._session

    async def _post_json(self, url: str, payload: Dict[str, Any],
                         ok_statuses=(200, 201, 202, 204)) -> bool:
        session = self._get_session()
        async with session.post(url, json=payload) as response:
            if response.status in ok_statuses:
                return True
            body = await response.text()
            logger.warning("notification_http_rejected",
                           channel_id=self.channel_id,
                           status=response.status,
                           body=body[:200])
            return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class LogChannel(NotificationChannel):
    """Writes alerts to the structured log. Always available."""

    async def send(self, alert: Alert) -> bool:
        log = logger.error if alert.severity == AlertSeverity.CRITICAL else logger.warning
        log("alert_notification",
            channel_id=self.channel_id,
            alert_id=alert.id,
            severity=alert.severity.value,
            message=alert.message,
            signature=str(alert.signature))
        return True


class SlackChannel(HttpChannel):
    """Delivers alerts to a Slack incoming webhook."""

    def __init__(self, channel_id: str, webhook_url: str, **kwargs):
        super().__init__(channel_id, **kwargs)
        self.webhook_url = webhook_url

    async def send(self, alert: Alert) -> bool:
        payload = {
            "text": format_subject(alert),
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": f"{alert.severity.value.upper()} Alert"},
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"*{alert.message}*"},
                },
                {
                    "type": "context",
                    "elements": [{
                        "type": "mrkdwn",
                        "text": f"Signature: {alert.signature} | "
                                f"Time: {alert.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
                    }],
                },
            ],
            "attachments": [{"color": _SLACK_COLORS.get(alert.severity, "warning")}],
        }
        return await self._post_json(self.webhook_url, payload, ok_statuses=(200,))


class WebhookChannel(HttpChannel):
    """POSTs the alert as JSON to an arbitrary endpoint."""

    def __init__(self, channel_id: str, url: str, headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(channel_id, **kwargs)
        self.url = url
        self.headers = headers or {}

    async def send(self, alert: Alert) -> bool:
        session = self._get_session()
        async with session.post(self.url, json={"alert": alert.to_dict()},
                                headers=self.headers) as response:
            return 200 <= response.status < 300


class PagerDutyChannel(HttpChannel):
    """Triggers PagerDuty events (Events API v2)."""

    def __init__(self, channel_id: str, routing_key: str, source: str = "production-monitor",
                 url: str = PAGERDUTY_EVENTS_URL, **kwargs):
        kwargs.setdefault("severities", [AlertSeverity.CRITICAL])
        super().__init__(channel_id, **kwargs)
        self.routing_key = routing_key
        self.source = source
        self.url = url

    async def send(self, alert: Alert) -> bool:
        payload = {
            "routing_key": self.routing_key,
            "event_action": "trigger",
            "dedup_key": str(alert.signature),
            "payload": {
                "summary": alert.message,
                "source": self.source,
                "severity": alert.severity.value,
                "timestamp": alert.created_at.isoformat(),
                "custom_details": alert.to_dict(),
            },
        }
        return await self._post_json(self.url, payload)


class EmailChannel(NotificationChannel):
    """Sends alerts by SMTP. The blocking SMTP exchange runs in the default executor."""

    def __init__(self, channel_id: str, smtp_host: str, from_address: str,
                 recipients: List[str], smtp_port: int = 587,
                 smtp_username: Optional[str] = None, smtp_password: Optional[str] = None,
                 use_tls: bool = True, timeout_seconds: float = 30, **kwargs):
        super().__init__(channel_id, **kwargs)
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.from_address = from_address
        self.recipients = recipients
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    async def send(self, alert: Alert) -> bool:
        if not self.recipients:
            logger.warning("email_no_recipients", channel_id=self.channel_id)
            return False

        message = MIMEText(format_body(alert), "plain")
        message["From"] = self.from_address
        message["To"] = ", ".join(self.recipients)
        message["Subject"] = format_subject(alert)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_message, message)
        return True

    def _send_message(self, message: MIMEText) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout_seconds) as server:
            if self.use_tls:
                server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(message)


# =============================================================================
# NOTIFIER
# =============================================================================

class Notifier:
    """Dispatches each alert to every registered channel that accepts it."""

    def __init__(self, channels: Optional[List[NotificationChannel]] = None):
        self.channels: List[NotificationChannel] = list(channels or [])

    def register(self, channel: NotificationChannel) -> None:
        self.channels.append(channel)

    async def dispatch(self, alert: Alert) -> None:
        targets = [channel for channel in self.channels if channel.accepts(alert)]
        if targets:
            await asyncio.gather(*(self._deliver(channel, alert) for channel in targets))

    async def _deliver(self, channel: NotificationChannel, alert: Alert) -> None:
        try:
            if not await channel.send(alert):
                raise NotificationError(channel.channel_id, "channel rejected delivery")
            channel.success_count += 1
        except Exception as e:
            channel.failure_count += 1
            logger.error("notification_failed",
                         channel_id=channel.channel_id,
                         alert_id=alert.id,
                         error=str(e))

    async def close(self) -> None:
        for channel in self.channels:
            try:
                await channel.close()
            except Exception as e:
                logger.error("notification_channel_close_error",
                             channel_id=channel.channel_id, error=str(e))

    def get_stats(self) -> Dict[str, Dict[str, int]]:
        return {
            channel.channel_id: {"success": channel.success_count, "failure": channel.failure_count}
            for channel in self.channels
        }


def build_channel(channel_config) -> NotificationChannel:
    """
    Create a channel from a ChannelConfig entry.

    Raises:
        ValueError: If the channel type is unknown
    """
    settings = channel_config.config
    common = {"severities": list(channel_config.severities) or None}
    timeout = settings.get("timeout_seconds", 10)
    channel_type = channel_config.type

    if channel_type == "log":
        return LogChannel(channel_config.channel_id, **common)
    if channel_type == "slack":
        return SlackChannel(channel_config.channel_id, settings["webhook_url"],
                            timeout_seconds=timeout, **common)
    if channel_type == "webhook":
        return WebhookChannel(channel_config.channel_id, settings["url"],
                              headers=settings.get("headers"), timeout_seconds=timeout, **common)
    if channel_type == "pagerduty":
        if common["severities"] is None:
            del common["severities"]
        return PagerDutyChannel(channel_config.channel_id, settings["routing_key"],
                                source=settings.get("source", "production-monitor"),
                                timeout_seconds=timeout, **common)
    if channel_type == "email":
        recipients = settings["recipients"]
        if isinstance(recipients, str):
            recipients = [recipients]
        return EmailChannel(channel_config.channel_id,
                            smtp_host=settings["smtp_host"],
                            smtp_port=settings.get("smtp_port", 587),
                            smtp_username=settings.get("smtp_username"),
                            smtp_password=settings.get("smtp_password"),
                            from_address=settings["from_address"],
                            recipients=list(recipients),
                            use_tls=settings.get("use_tls", True),
                            **common)
    raise ValueError(f"Unknown notification channel type: {channel_type}")


def build_notifier(channel_configs) -> Notifier:
    """Build a Notifier from the enabled channel configurations."""
    notifier = Notifier()
    for channel_config in channel_configs:
        if not channel_config.enabled:
            logger.info("notification_channel_disabled", channel_id=channel_config.channel_id)
            continue
        notifier.register(build_channel(channel_config))
        logger.info("notification_channel_registered",
                    channel_id=channel_config.channel_id,
                    channel_type=channel_config.type)
    return notifier
