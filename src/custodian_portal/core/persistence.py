"""Dual-backend persistence with explicit remote-then-local fallback."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from custodian_portal.core.errors import AuthorizationError
from custodian_portal.domain.models import ANONYMOUS_OWNER, Actor, StorageOutcome
from custodian_portal.domain.ports import StorageBackend

logger = logging.getLogger(__name__)

ACTIVITY_RETENTION = 50

T = TypeVar("T")


class FallbackStorage:
    """Try the primary backend, fall back to the secondary, mirror good writes.

    The secondary (local) store is always written after a successful primary
    write so it remains a usable snapshot when the primary goes away.
    """

    def __init__(self, *, secondary: StorageBackend, primary: StorageBackend | None = None) -> None:
        self._primary = primary
        self._secondary = secondary

    @property
    def primary(self) -> StorageBackend | None:
        return self._primary

    @property
    def secondary(self) -> StorageBackend:
        return self._secondary

    def connection_status(self) -> dict[str, object]:
        """Report which backend serves requests first."""
        if self._primary is not None:
            return {"type": self._primary.name, "connected": True, "fallback": self._secondary.name}
        return {"type": self._secondary.name, "connected": True, "fallback": None}

    def read(self, *, collection: str, key: str) -> StorageOutcome:
        if self._primary is not None:
            try:
                value = self._primary.read(collection=collection, key=key)
            except Exception as exc:
                self._log_fallback("read", collection, key, exc)
            else:
                return StorageOutcome(backend="remote", ok=True, value=value)
        try:
            value = self._secondary.read(collection=collection, key=key)
        except Exception as exc:
            logger.error(
                "storage.read_failed collection=%s key=%s backend=%s error=%s",
                collection,
                key,
                self._secondary.name,
                exc,
            )
            return StorageOutcome(backend="none", ok=False, value=None)
        return StorageOutcome(backend="local", ok=True, value=value)

    def list_keys(self, *, collection: str) -> StorageOutcome:
        if self._primary is not None:
            try:
                keys = self._primary.list_keys(collection=collection)
            except Exception as exc:
                self._log_fallback("list_keys", collection, "*", exc)
            else:
                return StorageOutcome(backend="remote", ok=True, value=keys)
        try:
            keys = self._secondary.list_keys(collection=collection)
        except Exception as exc:
            logger.error(
                "storage.list_keys_failed collection=%s backend=%s error=%s",
                collection,
                self._secondary.name,
                exc,
            )
            return StorageOutcome(backend="none", ok=False, value=[])
        return StorageOutcome(backend="local", ok=True, value=keys)

    def write(self, *, collection: str, key: str, value: Any) -> StorageOutcome:
        return self._mutate(
            "write",
            collection,
            key,
            lambda backend: backend.write(collection=collection, key=key, value=value),
        )

    def append(
        self, *, collection: str, key: str, item: Mapping[str, object], limit: int
    ) -> StorageOutcome:
        return self._mutate(
            "append",
            collection,
            key,
            lambda backend: backend.append(collection=collection, key=key, item=item, limit=limit),
        )

    def delete(self, *, collection: str, key: str) -> StorageOutcome:
        return self._mutate(
            "delete",
            collection,
            key,
            lambda backend: backend.delete(collection=collection, key=key),
        )

    def clear(self, *, key: str | None = None) -> StorageOutcome:
        label = key if key is not None else "*"
        return self._mutate(
            "clear", "*", label, lambda backend: backend.clear(key=key), strict=True
        )

    def _mutate(
        self,
        operation: str,
        collection: str,
        key: str,
        action: Callable[[StorageBackend], None],
        *,
        strict: bool = False,
    ) -> StorageOutcome:
        served_by: str = "local"
        primary_failed = False
        if self._primary is not None:
            try:
                action(self._primary)
            except Exception as exc:
                primary_failed = True
                self._log_fallback(operation, collection, key, exc)
            else:
                served_by = "remote"
        try:
            action(self._secondary)
        except Exception as exc:
            logger.error(
                "storage.%s_failed collection=%s key=%s backend=%s error=%s",
                operation,
                collection,
                key,
                self._secondary.name,
                exc,
            )
            if served_by == "remote":
                return StorageOutcome(backend="remote", ok=True)
            return StorageOutcome(backend="none", ok=False)
        if strict and primary_failed:
            return StorageOutcome(backend="local", ok=False)
        return StorageOutcome(backend=served_by, ok=True)  # type: ignore[arg-type]

    def _log_fallback(self, operation: str, collection: str, key: str, exc: Exception) -> None:
        primary_name = self._primary.name if self._primary is not None else "none"
        logger.warning(
            "storage.fallback operation=%s collection=%s key=%s primary=%s error=%s",
            operation,
            collection,
            key,
            primary_name,
            exc,
        )


class PersistenceAdapter:
    """Collection/owner addressed storage used by every portal service."""

    def __init__(self, storage: FallbackStorage) -> None:
        self._storage = storage

    @property
    def storage(self) -> FallbackStorage:
        return self._storage

    def connection_status(self) -> dict[str, object]:
        return self._storage.connection_status()

    def fetch(self, collection: str, owner_id: str | None = None) -> StorageOutcome:
        """Read a record and report the backend that served it."""
        owner = owner_id or ANONYMOUS_OWNER
        outcome = self._storage.read(collection=collection, key=owner)
        logger.debug(
            "storage.read collection=%s owner=%s backend=%s", collection, owner, outcome.backend
        )
        return outcome

    def get(self, collection: str, owner_id: str | None = None) -> Any | None:
        """Return the stored record or None; never raises on backend failure."""
        return self.fetch(collection, owner_id).value

    def get_list(self, collection: str, owner_id: str | None = None) -> list[dict[str, object]]:
        """Return a stored list of documents, ignoring malformed entries."""
        value = self.get(collection, owner_id)
        if not isinstance(value, list):
            return []
        return [dict(item) for item in value if isinstance(item, Mapping)]

    def owners(self, collection: str) -> list[str]:
        """Keys that hold a record in `collection`."""
        return list(self._storage.list_keys(collection=collection).value or [])

    def save(self, collection: str, record: Any, owner_id: str | None = None) -> bool:
        """Persist a record; True when at least one backend accepted it."""
        owner = owner_id or ANONYMOUS_OWNER
        return self._storage.write(collection=collection, key=owner, value=record).ok

    def append(
        self,
        collection: str,
        record: Mapping[str, object],
        owner_id: str | None = None,
        *,
        limit: int = ACTIVITY_RETENTION,
    ) -> bool:
        """Prepend a record to a capped list."""
        owner = owner_id or ANONYMOUS_OWNER
        return self._storage.append(collection=collection, key=owner, item=record, limit=limit).ok

    def delete(self, collection: str, owner_id: str | None = None) -> bool:
        owner = owner_id or ANONYMOUS_OWNER
        return self._storage.delete(collection=collection, key=owner).ok

    def clear(self, actor: Actor, owner_id: str | None = None) -> bool:
        """Remove data on every backend; restricted to administrators.

        With no owner every record is removed.
        """
        if not actor.is_admin:
            raise AuthorizationError("Admin access required to clear data")
        outcome = self._storage.clear(key=owner_id)
        logger.warning(
            "storage.clear actor=%s owner=%s ok=%s", actor.user_id, owner_id or "*", outcome.ok
        )
        return outcome.ok

    def update_list(
        self,
        collection: str,
        owner_id: str | None,
        mutate: Callable[[list[dict[str, object]]], T],
    ) -> tuple[T, bool]:
        """Read-modify-write a list collection; last write wins."""
        items = self.get_list(collection, owner_id)
        result = mutate(items)
        saved = self.save(collection, items, owner_id)
        return result, saved
