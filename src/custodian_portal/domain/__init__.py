"""Domain records and ports for the custodian portal."""

from custodian_portal.domain.models import (
    ACTIVITY_TYPES,
    ANONYMOUS_OWNER,
    CONTENT_TYPES,
    METRIC_COUNTERS,
    WORKSPACE_OWNER,
    ActivityItem,
    Actor,
    BackupMetadata,
    ContentRecord,
    DashboardMetrics,
    ExportOptions,
    ExportResult,
    RecordMetadata,
    SavedSearch,
    StorageOutcome,
    SystemAlert,
)
from custodian_portal.domain.ports import (
    BackupMirror,
    Exporter,
    Notifier,
    RelevanceScorer,
    StorageBackend,
)

__all__ = [
    "ACTIVITY_TYPES",
    "ANONYMOUS_OWNER",
    "CONTENT_TYPES",
    "METRIC_COUNTERS",
    "WORKSPACE_OWNER",
    "ActivityItem",
    "Actor",
    "BackupMetadata",
    "BackupMirror",
    "ContentRecord",
    "DashboardMetrics",
    "ExportOptions",
    "ExportResult",
    "Exporter",
    "Notifier",
    "RecordMetadata",
    "RelevanceScorer",
    "SavedSearch",
    "StorageBackend",
    "StorageOutcome",
    "SystemAlert",
]
