"""Remote relational store adapter speaking a PostgREST-style HTTP dialect."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from custodian_portal.core.errors import BackendError

logger = logging.getLogger(__name__)

METRICS_TABLE = "ce_metrics"
ACTIVITIES_TABLE = "ce_activities"
DOCUMENTS_TABLE = "ce_documents"
UNDEFINED_TABLE_CODE = "42P01"

_METRIC_COLUMNS: dict[str, str] = {
    "userId": "user_id",
    "storiesAnalyzed": "stories_analyzed",
    "brandTestsActive": "brand_tests_active",
    "contentItems": "content_items",
    "brandScore": "brand_score",
    "lastUpdated": "last_updated",
}

_ACTIVITY_COLUMNS: dict[str, str] = {
    "id": "id",
    "userId": "user_id",
    "type": "activity_type",
    "message": "message",
    "timestamp": "event_timestamp",
}


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


def serialize_metrics(document: Mapping[str, object], *, owner_id: str) -> dict[str, object]:
    """Map a camelCase metrics document onto `ce_metrics` columns."""
    row: dict[str, object] = {
        column: document.get(field) for field, column in _METRIC_COLUMNS.items()
    }
    row["user_id"] = owner_id
    row["stories_analyzed"] = row.get("stories_analyzed") or 0
    row["brand_tests_active"] = row.get("brand_tests_active") or 0
    row["content_items"] = row.get("content_items") or 0
    row["brand_score"] = row.get("brand_score") or 0
    row["last_updated"] = row.get("last_updated") or _utc_now()
    row["created_at"] = _utc_now()
    return row


def deserialize_metrics(row: Mapping[str, object]) -> dict[str, object]:
    """Map a `ce_metrics` row back onto the camelCase document."""
    document = {field: row.get(column) for field, column in _METRIC_COLUMNS.items()}
    for field in ("storiesAnalyzed", "brandTestsActive", "contentItems", "brandScore"):
        document[field] = document.get(field) or 0
    document["lastUpdated"] = row.get("last_updated") or row.get("created_at") or ""
    return document


def serialize_activity(document: Mapping[str, object], *, owner_id: str) -> dict[str, object]:
    """Map a camelCase activity document onto `ce_activities` columns."""
    row: dict[str, object] = {
        column: document.get(field) for field, column in _ACTIVITY_COLUMNS.items()
    }
    row["user_id"] = document.get("userId") or owner_id
    row["metadata"] = {}
    return row


def deserialize_activity(row: Mapping[str, object]) -> dict[str, object]:
    """Map a `ce_activities` row back onto the camelCase document."""
    return {field: row.get(column) for field, column in _ACTIVITY_COLUMNS.items()}


class RemoteTableStore:
    """Read and write portal documents through authenticated table endpoints.

    ``metrics`` and ``activities`` map onto dedicated tables with snake_case
    columns; every other collection is stored as a JSON payload row in
    ``ce_documents``.
    """

    name = "remote"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._client.close()

    def read(self, *, collection: str, key: str) -> Any | None:
        if collection == "metrics":
            rows = self._select(METRICS_TABLE, {"user_id": f"eq.{key}", "select": "*"})
            return deserialize_metrics(rows[0]) if rows else None
        if collection == "activities":
            rows = self._select(
                ACTIVITIES_TABLE,
                {
                    "user_id": f"eq.{key}",
                    "select": "*",
                    "order": "event_timestamp.desc",
                    "limit": "50",
                },
            )
            return [deserialize_activity(row) for row in rows]
        rows = self._select(
            DOCUMENTS_TABLE,
            {"collection": f"eq.{collection}", "record_key": f"eq.{key}", "select": "payload"},
        )
        if not rows:
            return None
        payload = rows[0].get("payload")
        if isinstance(payload, str):
            return json.loads(payload)
        return payload

    def write(self, *, collection: str, key: str, value: Any) -> None:
        if collection == "metrics":
            if not isinstance(value, Mapping):
                raise BackendError("metrics document must be an object")
            self._upsert(METRICS_TABLE, [serialize_metrics(value, owner_id=key)], "user_id")
            return
        if collection == "activities":
            items = value if isinstance(value, list) else []
            self._request("DELETE", ACTIVITIES_TABLE, params={"user_id": f"eq.{key}"})
            rows = [
                serialize_activity(item, owner_id=key)
                for item in items
                if isinstance(item, Mapping)
            ]
            if rows:
                self._request("POST", ACTIVITIES_TABLE, json_body=rows)
            return
        self._upsert(
            DOCUMENTS_TABLE,
            [
                {
                    "collection": collection,
                    "record_key": key,
                    "payload": value,
                    "updated_at": _utc_now(),
                }
            ],
            "collection,record_key",
        )

    def append(
        self, *, collection: str, key: str, item: Mapping[str, object], limit: int
    ) -> None:
        if collection == "activities":
            self._request(
                "POST", ACTIVITIES_TABLE, json_body=[serialize_activity(item, owner_id=key)]
            )
            return
        existing = self.read(collection=collection, key=key)
        items = existing if isinstance(existing, list) else []
        self.write(collection=collection, key=key, value=[dict(item), *items][:limit])

    def delete(self, *, collection: str, key: str) -> None:
        if collection == "metrics":
            self._request("DELETE", METRICS_TABLE, params={"user_id": f"eq.{key}"})
            return
        if collection == "activities":
            self._request("DELETE", ACTIVITIES_TABLE, params={"user_id": f"eq.{key}"})
            return
        self._request(
            "DELETE",
            DOCUMENTS_TABLE,
            params={"collection": f"eq.{collection}", "record_key": f"eq.{key}"},
        )

    def clear(self, *, key: str | None = None) -> None:
        user_filter = f"eq.{key}" if key is not None else "not.is.null"
        record_filter = f"eq.{key}" if key is not None else "not.is.null"
        self._request("DELETE", METRICS_TABLE, params={"user_id": user_filter})
        self._request("DELETE", ACTIVITIES_TABLE, params={"user_id": user_filter})
        self._request("DELETE", DOCUMENTS_TABLE, params={"record_key": record_filter})

    def list_keys(self, *, collection: str) -> list[str]:
        if collection in ("metrics", "activities"):
            table = METRICS_TABLE if collection == "metrics" else ACTIVITIES_TABLE
            rows = self._select(table, {"select": "user_id"})
            return list(dict.fromkeys(str(row["user_id"]) for row in rows if row.get("user_id")))
        rows = self._select(
            DOCUMENTS_TABLE,
            {"collection": f"eq.{collection}", "select": "record_key", "order": "updated_at.desc"},
        )
        return [str(row["record_key"]) for row in rows if row.get("record_key")]

    def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = self._request("GET", table, params=params)
        payload = response.json()
        if not isinstance(payload, list):
            raise BackendError(f"Unexpected payload from {table}: expected array.")
        return [row for row in payload if isinstance(row, dict)]

    def _upsert(self, table: str, rows: list[dict[str, object]], on_conflict: str) -> None:
        self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json_body=rows,
            prefer="resolution=merge-duplicates",
        )

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json_body: object | None = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            response = self._client.request(
                method,
                f"{self._base_url}/{table}",
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {table} failed: {exc}") from exc
        if response.is_success:
            return response
        code = _error_code(response)
        if code == UNDEFINED_TABLE_CODE:
            logger.error("remote.schema_missing table=%s hint=run the remote schema first", table)
        raise BackendError(
            f"{method} {table} returned HTTP {response.status_code}",
            code=code,
        )


def _error_code(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and payload.get("code") is not None:
        return str(payload["code"])
    return None
