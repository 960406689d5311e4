"""Workspace catalog of stories and media that feeds search and backups."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from custodian_portal.core.activity_log import ActivityLog, new_record_id
from custodian_portal.core.errors import NotFoundError, ValidationError
from custodian_portal.core.metrics import MetricsAggregator
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.core.search import MEDIA_COLLECTION, STORIES_COLLECTION
from custodian_portal.core.validation import sanitize_text, utc_now_iso
from custodian_portal.domain.models import WORKSPACE_OWNER

STORY_STATUSES = ("draft", "published", "archived")
MEDIA_TYPES = ("image", "video", "audio", "document")
_STORY_FIELDS = ("title", "content", "summary", "tags", "status", "location", "brandScore")

logger = logging.getLogger(__name__)


def _clean_tags(tags: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    for tag in tags:
        text = sanitize_text(str(tag))
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def _story_errors(story: dict[str, object]) -> list[str]:
    errors: list[str] = []
    if not str(story.get("title") or "").strip():
        errors.append("title is required")
    if story.get("status") not in STORY_STATUSES:
        errors.append(f"status must be one of {', '.join(STORY_STATUSES)}")
    score = story.get("brandScore")
    if score is not None and not (
        isinstance(score, (int, float)) and 0 <= float(score) <= 100
    ):
        errors.append("brandScore must be between 0 and 100")
    return errors


class ContentCatalog:
    """CRUD over the shared story and media collections.

    Every write is logged as a content activity for the acting user.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        activity_log: ActivityLog,
        metrics: MetricsAggregator,
    ) -> None:
        self._persistence = persistence
        self._activity_log = activity_log
        self._metrics = metrics

    def list_stories(self, status: str | None = None) -> list[dict[str, object]]:
        stories = self._persistence.get_list(STORIES_COLLECTION, WORKSPACE_OWNER)
        if status is None:
            return stories
        return [story for story in stories if story.get("status") == status]

    def get_story(self, story_id: str) -> dict[str, object]:
        for story in self.list_stories():
            if story.get("id") == story_id:
                return story
        raise NotFoundError(f"Story not found: {story_id}")

    def create_story(
        self,
        *,
        title: str,
        content: str,
        author_id: str,
        summary: str | None = None,
        tags: Iterable[str] = (),
        status: str = "draft",
        location: str | None = None,
        brand_score: float | None = None,
    ) -> dict[str, object]:
        now = utc_now_iso()
        story: dict[str, object] = {
            "id": new_record_id("story"),
            "title": sanitize_text(title),
            "content": sanitize_text(content),
            "summary": sanitize_text(summary) if summary else None,
            "authorId": author_id,
            "tags": _clean_tags(tags),
            "status": status,
            "location": sanitize_text(location) if location else None,
            "brandScore": brand_score,
            "createdAt": now,
            "updatedAt": now,
        }
        errors = _story_errors(story)
        if errors:
            raise ValidationError(errors)
        self._persistence.update_list(
            STORIES_COLLECTION, WORKSPACE_OWNER, lambda items: items.insert(0, story)
        )
        self._activity_log.log_content("Created", str(story["id"]), str(story["title"]), author_id)
        self._metrics.increment("contentItems", author_id)
        return story

    def update_story(
        self, story_id: str, changes: dict[str, object], *, actor_id: str
    ) -> dict[str, object]:
        """Apply a partial update; unknown fields are rejected."""
        unknown = sorted(set(changes) - set(_STORY_FIELDS))
        if unknown:
            raise ValidationError([f"unknown story fields: {', '.join(unknown)}"])
        current = self.get_story(story_id)
        updated = dict(current)
        for key, value in changes.items():
            if key == "tags":
                updated["tags"] = _clean_tags(value if isinstance(value, list) else [])
            elif isinstance(value, str):
                updated[key] = sanitize_text(value)
            else:
                updated[key] = value
        updated["updatedAt"] = utc_now_iso()
        errors = _story_errors(updated)
        if errors:
            raise ValidationError(errors)

        def swap(items: list[dict[str, object]]) -> None:
            for index, item in enumerate(items):
                if item.get("id") == story_id:
                    items[index] = updated

        self._persistence.update_list(STORIES_COLLECTION, WORKSPACE_OWNER, swap)
        self._activity_log.log_content("Updated", story_id, str(updated["title"]), actor_id)
        return updated

    def delete_story(self, story_id: str, *, actor_id: str) -> None:
        def drop(items: list[dict[str, object]]) -> dict[str, object] | None:
            for index, item in enumerate(items):
                if item.get("id") == story_id:
                    return items.pop(index)
            return None

        removed, _ = self._persistence.update_list(STORIES_COLLECTION, WORKSPACE_OWNER, drop)
        if removed is None:
            raise NotFoundError(f"Story not found: {story_id}")
        self._activity_log.log_content("Deleted", story_id, str(removed.get("title")), actor_id)

    def list_media(self, media_type: str | None = None) -> list[dict[str, object]]:
        media = self._persistence.get_list(MEDIA_COLLECTION, WORKSPACE_OWNER)
        if media_type is None:
            return media
        return [item for item in media if item.get("mediaType") == media_type]

    def add_media(
        self,
        *,
        filename: str,
        media_type: str,
        url: str,
        uploaded_by: str,
        name: str | None = None,
        description: str | None = None,
        alt_text: str | None = None,
        size: int = 0,
        tags: Iterable[str] = (),
    ) -> dict[str, object]:
        errors: list[str] = []
        if not filename.strip():
            errors.append("filename is required")
        if media_type not in MEDIA_TYPES:
            errors.append(f"mediaType must be one of {', '.join(MEDIA_TYPES)}")
        if not url.strip():
            errors.append("url is required")
        if size < 0:
            errors.append("size must be non-negative")
        if errors:
            raise ValidationError(errors)
        item: dict[str, object] = {
            "id": new_record_id("media"),
            "filename": filename.strip(),
            "name": sanitize_text(name) if name else None,
            "description": sanitize_text(description) if description else None,
            "altText": sanitize_text(alt_text) if alt_text else None,
            "mediaType": media_type,
            "url": url.strip(),
            "size": size,
            "tags": _clean_tags(tags),
            "uploadedAt": utc_now_iso(),
            "uploadedBy": uploaded_by,
        }
        self._persistence.update_list(
            MEDIA_COLLECTION, WORKSPACE_OWNER, lambda items: items.insert(0, item)
        )
        self._activity_log.log_content(
            "Uploaded", str(item["id"]), str(item["name"] or item["filename"]), uploaded_by
        )
        return item

    def delete_media(self, media_id: str, *, actor_id: str) -> None:
        def drop(items: list[dict[str, object]]) -> dict[str, object] | None:
            for index, item in enumerate(items):
                if item.get("id") == media_id:
                    return items.pop(index)
            return None

        removed, _ = self._persistence.update_list(MEDIA_COLLECTION, WORKSPACE_OWNER, drop)
        if removed is None:
            raise NotFoundError(f"Media not found: {media_id}")
        self._activity_log.log_content(
            "Deleted", media_id, str(removed.get("name") or removed.get("filename")), actor_id
        )
