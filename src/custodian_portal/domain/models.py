"""Core portal records shared by services, adapters, and the HTTP surface."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

ANONYMOUS_OWNER = "anonymous"
WORKSPACE_OWNER = "workspace"

ActivityType = Literal["content", "brand", "analytics", "system"]
ACTIVITY_TYPES: tuple[ActivityType, ...] = ("content", "brand", "analytics", "system")

ContentType = Literal["story", "media", "test", "activity"]
CONTENT_TYPES: tuple[ContentType, ...] = ("story", "media", "test", "activity")

Role = Literal["staff", "admin"]
BackupStatus = Literal["creating", "completed", "failed", "corrupted"]
BackendName = Literal["remote", "local", "none"]


def _str_or_none(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _float_or_none(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item).strip()]


@dataclass(frozen=True)
class Actor:
    """Authenticated caller identity used for privilege checks."""

    user_id: str
    role: Role = "staff"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class StorageOutcome:
    """Result of one storage call, including which backend served it."""

    backend: BackendName
    ok: bool
    value: Any = None


@dataclass(frozen=True)
class ActivityItem:
    """One entry in the bounded activity log."""

    activity_id: str
    type: ActivityType
    message: str
    timestamp_utc: str
    user_id: str | None = None

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.activity_id,
            "type": self.type,
            "message": self.message,
            "timestamp": self.timestamp_utc,
            "userId": self.user_id,
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> ActivityItem:
        raw_type = str(payload.get("type", "system"))
        activity_type: ActivityType = (
            raw_type if raw_type in ACTIVITY_TYPES else "system"  # type: ignore[assignment]
        )
        return cls(
            activity_id=str(payload.get("id", "")),
            type=activity_type,
            message=str(payload.get("message", "")),
            timestamp_utc=str(payload.get("timestamp", "")),
            user_id=_str_or_none(payload.get("userId")),
        )


METRIC_COUNTERS: dict[str, str] = {
    "storiesAnalyzed": "stories_analyzed",
    "brandTestsActive": "brand_tests_active",
    "contentItems": "content_items",
    "brandScore": "brand_score",
}


@dataclass(frozen=True)
class DashboardMetrics:
    """Dashboard counters for one owner."""

    owner_id: str = ANONYMOUS_OWNER
    stories_analyzed: int = 0
    brand_tests_active: int = 0
    content_items: int = 0
    brand_score: float = 0.0
    last_updated_utc: str = ""

    def counter(self, name: str) -> float:
        return float(getattr(self, METRIC_COUNTERS[name]))

    def to_document(self) -> dict[str, object]:
        return {
            "userId": self.owner_id,
            "storiesAnalyzed": self.stories_analyzed,
            "brandTestsActive": self.brand_tests_active,
            "contentItems": self.content_items,
            "brandScore": self.brand_score,
            "lastUpdated": self.last_updated_utc,
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, object], *, owner_id: str) -> DashboardMetrics:
        def as_int(key: str) -> int:
            value = _float_or_none(payload.get(key))
            return int(value) if value is not None else 0

        return cls(
            owner_id=str(payload.get("userId") or owner_id),
            stories_analyzed=as_int("storiesAnalyzed"),
            brand_tests_active=as_int("brandTestsActive"),
            content_items=as_int("contentItems"),
            brand_score=_float_or_none(payload.get("brandScore")) or 0.0,
            last_updated_utc=str(payload.get("lastUpdated", "")),
        )


@dataclass(frozen=True)
class RecordMetadata:
    """Searchable metadata attached to a content record."""

    author: str | None = None
    date_utc: str | None = None
    tags: tuple[str, ...] = ()
    location: str | None = None
    brand_score: float | None = None
    status: str | None = None


@dataclass(frozen=True)
class ContentRecord:
    """Uniform view over stories, media, brand tests, and activities."""

    record_id: str
    type: ContentType
    title: str
    content: str = ""
    summary: str = ""
    description: str = ""
    metadata: RecordMetadata = field(default_factory=RecordMetadata)

    @classmethod
    def from_story(cls, payload: Mapping[str, object]) -> ContentRecord:
        content = str(payload.get("content") or "")
        summary = str(payload.get("summary") or "")
        if not summary and content:
            summary = content[:200] + ("..." if len(content) > 200 else "")
        return cls(
            record_id=str(payload.get("id", "")),
            type="story",
            title=str(payload.get("title") or ""),
            content=content,
            summary=summary,
            metadata=RecordMetadata(
                author=_str_or_none(payload.get("authorId")),
                date_utc=_str_or_none(payload.get("createdAt")),
                tags=tuple(_string_list(payload.get("tags"))),
                location=_str_or_none(payload.get("location")),
                brand_score=_float_or_none(payload.get("brandScore")),
                status=_str_or_none(payload.get("status")),
            ),
        )

    @classmethod
    def from_media(cls, payload: Mapping[str, object]) -> ContentRecord:
        description = str(payload.get("description") or "")
        return cls(
            record_id=str(payload.get("id", "")),
            type="media",
            title=str(payload.get("name") or payload.get("filename") or "Untitled"),
            summary=str(payload.get("altText") or description),
            description=description,
            metadata=RecordMetadata(
                author=_str_or_none(payload.get("uploadedBy")),
                date_utc=_str_or_none(payload.get("uploadedAt")),
                tags=tuple(_string_list(payload.get("tags"))),
            ),
        )

    @classmethod
    def from_brand_test(cls, payload: Mapping[str, object]) -> ContentRecord:
        description = str(payload.get("description") or "")
        raw_content = payload.get("content")
        messages: list[str] = []
        if isinstance(raw_content, Mapping):
            for values in raw_content.values():
                messages.extend(_string_list(values))
        return cls(
            record_id=str(payload.get("id", "")),
            type="test",
            title=str(payload.get("name") or ""),
            content=" ".join(messages),
            summary=description,
            description=description,
            metadata=RecordMetadata(
                author=_str_or_none(payload.get("authorId")),
                date_utc=_str_or_none(payload.get("createdAt")),
                tags=tuple(_string_list(payload.get("targetAudiences"))),
                status=_str_or_none(payload.get("status")),
            ),
        )

    @classmethod
    def from_activity(cls, item: ActivityItem) -> ContentRecord:
        return cls(
            record_id=item.activity_id,
            type="activity",
            title=f"{item.type} Activity",
            content=item.message,
            summary=item.message,
            metadata=RecordMetadata(author=item.user_id, date_utc=item.timestamp_utc),
        )


@dataclass(frozen=True)
class SavedSearch:
    """User-saved query and filter set."""

    search_id: str
    name: str
    query: str
    filters: dict[str, object]
    user_id: str
    created_at_utc: str
    last_used_utc: str
    use_count: int = 0

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.search_id,
            "name": self.name,
            "query": self.query,
            "filters": dict(self.filters),
            "userId": self.user_id,
            "createdAt": self.created_at_utc,
            "lastUsed": self.last_used_utc,
            "useCount": self.use_count,
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> SavedSearch:
        filters = payload.get("filters")
        return cls(
            search_id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            query=str(payload.get("query", "")),
            filters=dict(filters) if isinstance(filters, Mapping) else {},
            user_id=str(payload.get("userId", ANONYMOUS_OWNER)),
            created_at_utc=str(payload.get("createdAt", "")),
            last_used_utc=str(payload.get("lastUsed", "")),
            use_count=int(_float_or_none(payload.get("useCount")) or 0),
        )


@dataclass(frozen=True)
class BackupMetadata:
    """Bookkeeping record for one backup payload."""

    backup_id: str
    timestamp_utc: str
    data_types: tuple[str, ...]
    status: BackupStatus
    created_by: str
    encoding: str
    size: int = 0
    checksum: str = ""
    version: str = "1.0"
    description: str | None = None
    error: str | None = None

    def to_document(self) -> dict[str, object]:
        return {
            "id": self.backup_id,
            "timestamp": self.timestamp_utc,
            "size": self.size,
            "checksum": self.checksum,
            "dataTypes": list(self.data_types),
            "version": self.version,
            "encoding": self.encoding,
            "status": self.status,
            "createdBy": self.created_by,
            "description": self.description,
            "error": self.error,
        }

    @classmethod
    def from_document(cls, payload: Mapping[str, object]) -> BackupMetadata:
        raw_status = str(payload.get("status", "failed"))
        status: BackupStatus = (
            raw_status  # type: ignore[assignment]
            if raw_status in {"creating", "completed", "failed", "corrupted"}
            else "failed"
        )
        return cls(
            backup_id=str(payload.get("id", "")),
            timestamp_utc=str(payload.get("timestamp", "")),
            data_types=tuple(_string_list(payload.get("dataTypes"))),
            status=status,
            created_by=str(payload.get("createdBy", "System")),
            encoding=str(payload.get("encoding", "base64")),
            size=int(_float_or_none(payload.get("size")) or 0),
            checksum=str(payload.get("checksum", "")),
            version=str(payload.get("version", "1.0")),
            description=_str_or_none(payload.get("description")),
            error=_str_or_none(payload.get("error")),
        )


@dataclass(frozen=True)
class SystemAlert:
    """Notification payload handed to the notifier collaborator."""

    level: Literal["low", "medium", "high", "critical"]
    title: str
    component: str
    description: str
    action_required: bool = False
    action_description: str | None = None


ExportFormat = Literal["csv", "json", "pdf"]
ExportDateRange = Literal["all", "last_week", "last_month", "last_quarter"]
ExportTemplate = Literal["executive", "technical", "marketing"]


@dataclass(frozen=True)
class ExportOptions:
    """Request accepted by the export collaborator."""

    type: ExportFormat = "json"
    date_range: ExportDateRange = "all"
    include_metrics: bool = True
    include_activities: bool = True
    include_content: bool = True
    include_test_results: bool = False
    template: ExportTemplate = "executive"


@dataclass(frozen=True)
class ExportResult:
    """Response from the export collaborator."""

    success: bool
    filename: str
    download_url: str | None = None
    error: str | None = None
