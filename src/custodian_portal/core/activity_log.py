"""Bounded, newest-first activity log."""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime

from custodian_portal.core.errors import ValidationError
from custodian_portal.core.persistence import ACTIVITY_RETENTION, PersistenceAdapter
from custodian_portal.domain.models import ACTIVITY_TYPES, ANONYMOUS_OWNER, ActivityItem

ACTIVITIES_COLLECTION = "activities"

logger = logging.getLogger(__name__)


def new_record_id(prefix: str) -> str:
    """Build a sortable, collision-resistant record id."""
    stamp = int(datetime.now(UTC).timestamp() * 1000)
    return f"{prefix}_{stamp}_{secrets.token_hex(5)}"


class ActivityLog:
    """Append-only activity feed truncated to the newest entries on every write."""

    def __init__(self, persistence: PersistenceAdapter, *, limit: int = ACTIVITY_RETENTION) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive.")
        self._persistence = persistence
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    def record(
        self, activity_type: str, message: str, owner_id: str | None = None
    ) -> ActivityItem:
        """Prepend one activity and persist the truncated list."""
        errors: list[str] = []
        if activity_type not in ACTIVITY_TYPES:
            errors.append(f"type must be one of {', '.join(ACTIVITY_TYPES)}")
        if not message.strip():
            errors.append("message must not be empty")
        if errors:
            raise ValidationError(errors)
        owner = owner_id or ANONYMOUS_OWNER
        item = ActivityItem(
            activity_id=new_record_id("activity"),
            type=activity_type,  # type: ignore[arg-type]
            message=message.strip(),
            timestamp_utc=datetime.now(UTC).isoformat(),
            user_id=owner,
        )
        saved = self._persistence.append(
            ACTIVITIES_COLLECTION, item.to_document(), owner, limit=self._limit
        )
        if not saved:
            logger.error("activity.persist_failed owner=%s id=%s", owner, item.activity_id)
        return item

    def list(self, owner_id: str | None = None, limit: int | None = None) -> list[ActivityItem]:
        """Return up to `limit` activities, newest first; empty when nothing is stored."""
        effective_limit = self._limit if limit is None else max(0, limit)
        documents = self._persistence.get_list(ACTIVITIES_COLLECTION, owner_id)
        return [ActivityItem.from_document(doc) for doc in documents[:effective_limit]]

    def log_content(
        self,
        action: str,
        content_id: str,
        details: str | None = None,
        owner_id: str | None = None,
    ) -> ActivityItem:
        return self.record("content", _action_message(action, content_id, details), owner_id)

    def log_brand(
        self,
        action: str,
        test_id: str,
        details: str | None = None,
        owner_id: str | None = None,
    ) -> ActivityItem:
        return self.record("brand", _action_message(action, test_id, details), owner_id)

    def log_system(self, message: str, owner_id: str | None = None) -> ActivityItem:
        return self.record("system", message, owner_id)


def _action_message(action: str, subject_id: str, details: str | None) -> str:
    if details:
        return f"{action}: {subject_id} - {details}"
    return f"{action}: {subject_id}"
