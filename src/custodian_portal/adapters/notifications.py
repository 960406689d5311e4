"""Notifier adapters for operator alerts."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from custodian_portal.adapters.environment import str_env
from custodian_portal.domain.models import SystemAlert
from custodian_portal.domain.ports import Notifier

logger = logging.getLogger(__name__)

_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


def alert_payload(alert: SystemAlert) -> dict[str, object]:
    return {
        "level": alert.level,
        "title": alert.title,
        "component": alert.component,
        "description": alert.description,
        "actionRequired": alert.action_required,
        "actionDescription": alert.action_description,
        "sentAt": datetime.now(UTC).isoformat(),
    }


class LoggingNotifier:
    """Write alerts to the log at a level matching their severity."""

    def notify(self, alert: SystemAlert) -> None:
        logger.log(
            _LEVELS.get(alert.level, logging.INFO),
            "notify.alert level=%s component=%s title=%s description=%s",
            alert.level,
            alert.component,
            alert.title,
            alert.description,
        )


class WebhookNotifier:
    """POST alerts as JSON to a webhook endpoint."""

    def __init__(self, url: str, *, timeout_seconds: float = 10.0) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds

    @property
    def url(self) -> str:
        return self._url

    def notify(self, alert: SystemAlert) -> None:
        response = httpx.post(
            self._url,
            json=alert_payload(alert),
            timeout=self._timeout_seconds,
        )
        response.raise_for_status()


def create_notifier(webhook_url: str | None = None) -> Notifier:
    """Webhook notifier when a URL is configured, else log-only."""
    url = webhook_url or str_env("CUSTODIAN_NOTIFY_WEBHOOK_URL")
    if url:
        return WebhookNotifier(url)
    return LoggingNotifier()
