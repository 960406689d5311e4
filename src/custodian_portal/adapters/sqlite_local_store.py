"""SQLite-backed key to JSON document map used as the local fallback store."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


class SQLiteLocalStore:
    """Persist JSON documents keyed by collection and record key."""

    name = "local"

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_records (
                    collection TEXT NOT NULL,
                    record_key TEXT NOT NULL,
                    value_json TEXT NOT NULL,
                    updated_at_utc TEXT NOT NULL,
                    PRIMARY KEY (collection, record_key)
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_kv_records_key
                ON kv_records(record_key)
                """
            )

    def read(self, *, collection: str, key: str) -> Any | None:
        """Load one document, or None when absent."""
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT value_json
                FROM kv_records
                WHERE collection = ? AND record_key = ?
                """,
                (collection, key),
            ).fetchone()
        if row is None:
            return None
        return json.loads(str(row["value_json"]))

    def write(self, *, collection: str, key: str, value: Any) -> None:
        """Insert or replace one document."""
        now = datetime.now(UTC).isoformat()
        payload = json.dumps(value, ensure_ascii=False)
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO kv_records (collection, record_key, value_json, updated_at_utc)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, record_key)
                DO UPDATE SET value_json = excluded.value_json,
                              updated_at_utc = excluded.updated_at_utc
                """,
                (collection, key, payload, now),
            )

    def append(
        self, *, collection: str, key: str, item: Mapping[str, object], limit: int
    ) -> None:
        """Prepend an item to a list document and keep only the newest `limit`."""
        if limit <= 0:
            raise ValueError("limit must be positive.")
        existing = self.read(collection=collection, key=key)
        items = existing if isinstance(existing, list) else []
        self.write(collection=collection, key=key, value=[dict(item), *items][:limit])

    def delete(self, *, collection: str, key: str) -> None:
        with self._connect() as connection:
            connection.execute(
                "DELETE FROM kv_records WHERE collection = ? AND record_key = ?",
                (collection, key),
            )

    def clear(self, *, key: str | None = None) -> None:
        """Delete every document for one key, or everything when key is None."""
        with self._connect() as connection:
            if key is None:
                connection.execute("DELETE FROM kv_records")
            else:
                connection.execute("DELETE FROM kv_records WHERE record_key = ?", (key,))

    def list_keys(self, *, collection: str) -> list[str]:
        """Return record keys stored under one collection."""
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT record_key
                FROM kv_records
                WHERE collection = ?
                ORDER BY updated_at_utc DESC
                """,
                (collection,),
            ).fetchall()
        return [str(row["record_key"]) for row in rows]
