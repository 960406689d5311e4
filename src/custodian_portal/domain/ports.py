"""Ports for persistence, scoring, notification, and export collaborators."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from custodian_portal.domain.models import (
    ContentRecord,
    ExportOptions,
    ExportResult,
    SystemAlert,
)


class StorageBackend(Protocol):
    """Key-addressed JSON document storage.

    Records are addressed by ``(collection, key)`` where ``key`` is usually an
    owner id. Implementations raise on failure; callers decide on fallback.
    """

    name: str

    def read(self, *, collection: str, key: str) -> Any | None: ...

    def write(self, *, collection: str, key: str, value: Any) -> None: ...

    def append(
        self, *, collection: str, key: str, item: Mapping[str, object], limit: int
    ) -> None: ...

    def delete(self, *, collection: str, key: str) -> None: ...

    def clear(self, *, key: str | None = None) -> None: ...

    def list_keys(self, *, collection: str) -> list[str]: ...


class RelevanceScorer(Protocol):
    """Scores one content record against a free-text query."""

    def score(self, record: ContentRecord, query: str) -> float: ...


class Notifier(Protocol):
    """Delivers operator-facing alerts."""

    def notify(self, alert: SystemAlert) -> None: ...


class Exporter(Protocol):
    """Produces downloadable exports from portal data."""

    def export(self, options: ExportOptions, owner_id: str | None = None) -> ExportResult: ...


class BackupMirror(Protocol):
    """Secondary target that receives a copy of every backup payload."""

    def put(self, *, backup_id: str, payload: str) -> None: ...

    def get(self, *, backup_id: str) -> str | None: ...

    def remove(self, *, backup_id: str) -> None: ...
