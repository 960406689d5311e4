"""Best-effort delivery of operator alerts."""

from __future__ import annotations

import logging

from custodian_portal.domain.models import SystemAlert
from custodian_portal.domain.ports import Notifier

logger = logging.getLogger(__name__)


def safe_notify(notifier: Notifier | None, alert: SystemAlert) -> bool:
    """Send an alert, logging instead of raising on failure."""
    logger.info(
        "alert.%s component=%s title=%s", alert.level, alert.component, alert.title
    )
    if notifier is None:
        return False
    try:
        notifier.notify(alert)
    except Exception as exc:
        logger.warning("alert.delivery_failed title=%s error=%s", alert.title, exc)
        return False
    return True
