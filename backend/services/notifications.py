"""Outbound alert notifications (email via the EmailJS REST API).

The pipeline only depends on the ``AlertNotifier`` protocol: ``notify(alert)``
returns whether the alert went out and, if not, why. Rate limiting, cooldowns,
recipients and templates are all handled here.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from core.clock import local_now
from core.models import Alert, Anomaly, Severity
from services.alerts import AlertSummary
from services.settings import EmailSettings

logger = logging.getLogger(__name__)

_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.CRITICAL: "#DC2626",
    Severity.WARNING: "#F59E0B",
    Severity.INFO: "#3B82F6",
}
_SEVERITY_ICONS: dict[Severity, str] = {
    Severity.CRITICAL: "🚨",
    Severity.WARNING: "⚠️",
    Severity.INFO: "ℹ️",
}


@dataclass
class NotifyResult:
    sent: bool
    reason: str | None = None
    recipients: int = 0
    message_id: str | None = None
    timestamp: datetime = field(default_factory=local_now)

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sent": self.sent, "timestamp": self.timestamp.isoformat()}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.sent:
            data["recipients"] = self.recipients
            data["message_id"] = self.message_id
        return data


@dataclass
class ConfigurationStatus:
    configured: bool
    enabled: bool
    missing_config: list[str]
    has_recipients: bool


class AlertNotifier(Protocol):
    """Dispatch boundary the pipeline hands critical alerts to."""

    async def notify(self, alert: Alert) -> NotifyResult: ...

    def clear_cooldowns(self) -> None: ...

    def clear_rate_limiting(self) -> None: ...


class EmailDeliveryError(Exception):
    """EmailJS rejected or failed to accept a message."""


class EmailNotifier:
    """Sends alert emails with a per-minute rate limit and per-floor cooldowns."""

    def __init__(self, settings: EmailSettings | None = None) -> None:
        self.settings = settings if settings is not None else EmailSettings()
        self.templates = self.settings.templates()
        self.recipients = self.settings.recipients()
        self._sent_at: list[float] = []  # monotonic send times in the last minute
        self._last_alert_sent: dict[str, float] = {}  # "floor-severity" -> monotonic time

        if self.settings.EMAIL_NOTIFICATIONS_ENABLED:
            logger.info(
                "Email notifications enabled (max %d/min, cooldown %d min)",
                self.settings.EMAIL_MAX_PER_MINUTE,
                self.settings.EMAIL_COOLDOWN_MINUTES,
            )
        else:
            logger.info("Email notifications disabled (set EMAIL_NOTIFICATIONS_ENABLED=true)")

    @property
    def enabled(self) -> bool:
        return self.settings.EMAIL_NOTIFICATIONS_ENABLED

    def check_configuration(self) -> ConfigurationStatus:
        missing = [
            name
            for name in ("EMAILJS_SERVICE_ID", "EMAILJS_PUBLIC_KEY", "EMAILJS_PRIVATE_KEY")
            if not getattr(self.settings, name)
        ]
        return ConfigurationStatus(
            configured=not missing,
            enabled=self.enabled,
            missing_config=missing,
            has_recipients=any(self.recipients.values()),
        )

    # ------------------------------------------------------------------
    # Delivery gating
    # ------------------------------------------------------------------

    def can_send_email(self) -> bool:
        if not self.enabled:
            return False
        one_minute_ago = time.monotonic() - 60
        self._sent_at = [t for t in self._sent_at if t > one_minute_ago]
        if len(self._sent_at) >= self.settings.EMAIL_MAX_PER_MINUTE:
            logger.warning("Email rate limit reached; no more emails this minute")
            return False
        return True

    def check_cooldown(self, floor_id: int, severity: Severity) -> bool:
        """True once the cooldown for this floor and severity has elapsed."""
        key = f"{floor_id}-{severity.label}"
        last_sent = self._last_alert_sent.get(key)
        if last_sent is None:
            return True
        cooldown_s = self.settings.EMAIL_COOLDOWN_MINUTES * 60
        elapsed = time.monotonic() - last_sent
        if elapsed < cooldown_s:
            logger.info("Cooldown active for %s, %.0f s remaining", key, cooldown_s - elapsed)
            return False
        return True

    def _recipients_for(self, severity: Severity) -> list[str]:
        match severity:
            case Severity.CRITICAL:
                pool = [*self.recipients["critical"], *self.recipients["admin"]]
            case Severity.WARNING:
                pool = [*self.recipients["warning"], *self.recipients["admin"]]
            case _:
                pool = list(self.recipients["info"])
        return list(dict.fromkeys(pool))

    def _record_send(self, floor_id: int | None = None, severity: Severity | None = None) -> None:
        now = time.monotonic()
        self._sent_at.append(now)
        if floor_id is not None and severity is not None:
            self._last_alert_sent[f"{floor_id}-{severity.label}"] = now

    def clear_cooldowns(self) -> None:
        self._last_alert_sent.clear()
        logger.info("Email cooldowns cleared")

    def clear_rate_limiting(self) -> None:
        self._sent_at = []
        logger.info("Email rate limiting reset")

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def _send(self, template_id: str, template_params: dict[str, Any]) -> str:
        payload = {
            "service_id": self.settings.EMAILJS_SERVICE_ID,
            "template_id": template_id,
            "user_id": self.settings.EMAILJS_PUBLIC_KEY,
            "accessToken": self.settings.EMAILJS_PRIVATE_KEY,
            "template_params": template_params,
        }
        timeout = aiohttp.ClientTimeout(total=self.settings.EMAIL_TIMEOUT_SECONDS)
        async with (
            aiohttp.ClientSession(timeout=timeout) as session,
            session.post(self.settings.EMAILJS_API_URL, json=payload) as response,
        ):
            body = await response.text()
            if response.status != 200:
                raise EmailDeliveryError(f"EmailJS returned {response.status}: {body}")
            return body

    async def _deliver(self, template_id: str, template_params: dict[str, Any]) -> tuple[str | None, str | None]:
        """Send and return ``(message_id, error)``; transport errors never escape."""
        try:
            return await self._send(template_id, template_params), None
        except (aiohttp.ClientError, asyncio.TimeoutError, EmailDeliveryError) as exc:
            logger.error("Email delivery failed: %s", exc)
            return None, str(exc) or type(exc).__name__

    async def notify(self, alert: Alert) -> NotifyResult:
        """Email an alert to the recipients for its severity."""
        status = self.check_configuration()
        if not self.enabled:
            return NotifyResult(sent=False, reason="Email notifications disabled")
        if not status.configured:
            return NotifyResult(sent=False, reason=f"Incomplete configuration: {', '.join(status.missing_config)}")
        if not self.can_send_email():
            return NotifyResult(sent=False, reason="Rate limit exceeded")
        if not self.check_cooldown(alert.floor_id, alert.severity):
            return NotifyResult(sent=False, reason="Cooldown active")

        recipients = self._recipients_for(alert.severity)
        if not recipients:
            logger.warning("No recipients configured for severity %s", alert.severity.label)
            return NotifyResult(sent=False, reason="No recipients configured")

        params = self.alert_template_params(alert)
        params["to_email"] = ",".join(recipients)
        template_id = self.templates.get(alert.severity.label, self.templates["info"])

        message_id, error = await self._deliver(template_id, params)
        if error is not None:
            return NotifyResult(sent=False, reason=error)

        self._record_send(alert.floor_id, alert.severity)
        logger.info("Email sent: %s - floor %d", alert.severity.label, alert.floor_id)
        return NotifyResult(sent=True, recipients=len(recipients), message_id=message_id)

    async def send_daily_summary(self, summary: AlertSummary) -> NotifyResult:
        if not self.enabled:
            return NotifyResult(sent=False, reason="Email notifications disabled")
        status = self.check_configuration()
        if not status.configured:
            return NotifyResult(sent=False, reason=f"Incomplete configuration: {', '.join(status.missing_config)}")
        recipients = self.recipients["admin"]
        if not recipients:
            return NotifyResult(sent=False, reason="No recipients configured")
        if not self.can_send_email():
            return NotifyResult(sent=False, reason="Rate limit exceeded")

        params: dict[str, Any] = {
            "to_email": ",".join(recipients),
            "date": summary.date,
            "total_alerts": summary.total_alerts,
            "critical_alerts": summary.critical_alerts,
            "warning_alerts": summary.warning_alerts,
            "info_alerts": summary.info_alerts,
            "predictive_alerts": summary.predictive_alerts,
            "alerts_by_floor": "\n".join(f"Floor {k}: {v}" for k, v in summary.alerts_by_floor.items()),
            "top_anomalies": "\n".join(f"{t}: {c}" for t, c in summary.top_anomalies),
        }
        message_id, error = await self._deliver(self.templates["summary"], params)
        if error is not None:
            return NotifyResult(sent=False, reason=error)
        self._record_send()
        return NotifyResult(sent=True, recipients=len(recipients), message_id=message_id)

    async def send_test_email(self, email: str) -> NotifyResult:
        status = self.check_configuration()
        if not status.configured:
            return NotifyResult(sent=False, reason=f"Incomplete configuration: {', '.join(status.missing_config)}")
        params = {
            "to_email": email,
            "message": "This is a test email from the floor monitoring system",
            "timestamp": local_now().strftime("%Y-%m-%d %H:%M:%S"),
        }
        message_id, error = await self._deliver(self.templates["info"], params)
        if error is not None:
            return NotifyResult(sent=False, reason=error)
        return NotifyResult(sent=True, recipients=1, message_id=message_id)

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def format_anomalies(anomalies: tuple[Anomaly, ...]) -> str:
        return "\n\n".join(
            f"{i}. {a.metric}: {a.message}\n   -> {a.recommendation}" for i, a in enumerate(anomalies, start=1)
        )

    def alert_template_params(self, alert: Alert) -> dict[str, Any]:
        main = alert.anomalies[0]
        return {
            "building_name": alert.building_name or "Building",
            "floor_name": alert.floor_name or f"Floor {alert.floor_id}",
            "floor_id": alert.floor_id,
            "severity": alert.severity.label.upper(),
            "timestamp": alert.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            "anomalies_count": len(alert.anomalies),
            "anomalies_list": self.format_anomalies(alert.anomalies),
            "main_metric": main.metric,
            "main_message": main.message,
            "main_recommendation": main.recommendation,
            "severity_color": _SEVERITY_COLORS[alert.severity],
            "severity_icon": _SEVERITY_ICONS[alert.severity],
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "configured": self.check_configuration().configured,
            "emails_sent_last_minute": len(self._sent_at),
            "max_emails_per_minute": self.settings.EMAIL_MAX_PER_MINUTE,
            "can_send_more": self.can_send_email(),
            "active_cooldowns": len(self._last_alert_sent),
            "recipients": {group: len(addresses) for group, addresses in self.recipients.items()},
        }
