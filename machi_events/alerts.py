from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

import requests

from .config import DEFAULT_TIMEZONE, Settings
from .drift import DriftResult
from .errors import ScrapingError
from .models import Alert, AlertType

logger = logging.getLogger(__name__)

_EMOJI = {
    AlertType.ERROR: "🚨",
    AlertType.STRUCTURE_CHANGE: "⚠️",
    AlertType.WARNING: "⚡",
}

_SLACK_COLOR = {
    AlertType.ERROR: "danger",
    AlertType.STRUCTURE_CHANGE: "warning",
    AlertType.WARNING: "#FFA500",
}


def error_alert(error: ScrapingError) -> Alert:
    details: Dict[str, Any] = {
        "errorType": error.kind.value,
        "retryable": error.retryable,
    }
    trace = error.stack_trace()
    if trace:
        details["stack"] = trace
    return Alert(type=AlertType.ERROR, site_name=error.site_name, message=error.message, details=details)


def structure_change_alert(site_name: str, result: DriftResult) -> Alert:
    return Alert(
        type=AlertType.STRUCTURE_CHANGE,
        site_name=site_name,
        message=result.reason or "Structure change detected",
        details=result.to_details(),
    )


def warning_alert(site_name: str, message: str, details: Optional[Dict[str, Any]] = None) -> Alert:
    return Alert(type=AlertType.WARNING, site_name=site_name, message=message, details=details or {})


class AlertChannel(ABC):
    name: str = "channel"

    @abstractmethod
    def send(self, alert: Alert) -> None:
        """Deliver one alert. May raise; the dispatcher contains failures."""


class SlackWebhookChannel(AlertChannel):
    name = "slack"

    def __init__(self, webhook_url: str, *, timeout_s: float = 10.0, tz_name: str = DEFAULT_TIMEZONE) -> None:
        self.webhook_url = webhook_url
        self.timeout_s = timeout_s
        self.tz = ZoneInfo(tz_name)

    def build_payload(self, alert: Alert) -> Dict[str, Any]:
        label = alert.type.value.upper()
        fields: List[Dict[str, Any]] = [
            {"title": "Site", "value": alert.site_name, "short": True},
            {
                "title": "Time",
                "value": alert.timestamp.astimezone(self.tz).strftime("%Y/%m/%d %H:%M:%S"),
                "short": True,
            },
            {"title": "Message", "value": alert.message, "short": False},
        ]
        if alert.details:
            fields.append({
                "title": "Details",
                "value": "```" + json.dumps(alert.details, ensure_ascii=False, indent=2, default=str) + "```",
                "short": False,
            })

        return {
            "text": f"{_EMOJI.get(alert.type, 'ℹ️')} *{label}*: {alert.site_name}",
            "attachments": [{"color": _SLACK_COLOR.get(alert.type, "#36A64F"), "fields": fields}],
        }

    def send(self, alert: Alert) -> None:
        r = requests.post(self.webhook_url, json=self.build_payload(alert), timeout=self.timeout_s)
        if r.status_code >= 400:
            raise RuntimeError(f"Slack API error: {r.status_code} {r.reason}")


class AlertDispatcher:
    """
    Best-effort fan-out of alerts. Never raises back into the pipeline.
    """

    def __init__(self, channels: Sequence[AlertChannel] = ()) -> None:
        self.channels = list(channels)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertDispatcher":
        channels: List[AlertChannel] = []
        if settings.slack_webhook_url:
            channels.append(SlackWebhookChannel(settings.slack_webhook_url, tz_name=settings.timezone))
        return cls(channels)

    def dispatch(self, alert: Alert) -> int:
        """Returns the number of channels that accepted the alert."""
        kind = alert.type.value.upper()
        if not self.channels:
            logger.warning(
                "[ALERT] %s: %s - %s (not delivered: no alert channels configured, set SLACK_WEBHOOK_URL)",
                kind, alert.site_name, alert.message,
            )
            return 0

        logger.info("[ALERT] %s: %s - %s", kind, alert.site_name, alert.message)

        delivered = 0
        for channel in self.channels:
            try:
                channel.send(alert)
                delivered += 1
            except Exception as e:
                logger.error(
                    "[alert] channel=%s failed for site=%s: %s: %s",
                    channel.name, alert.site_name, type(e).__name__, e,
                )
        return delivered
