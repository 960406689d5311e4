from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from custodian_portal.adapters.remote_table_store import RemoteTableStore
from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.errors import BackendError
from custodian_portal.core.persistence import FallbackStorage


def _store(handler: object) -> RemoteTableStore:
    client = httpx.Client(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]
    return RemoteTableStore(
        base_url="https://db.example.test/rest/v1/", api_key="service-key", client=client
    )


def test_read_metrics_maps_columns() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "user_id": "alice",
                    "stories_analyzed": 3,
                    "brand_tests_active": 1,
                    "content_items": 4,
                    "brand_score": 72.5,
                    "last_updated": "2024-06-01T00:00:00+00:00",
                }
            ],
        )

    document = _store(handler).read(collection="metrics", key="alice")

    assert document == {
        "userId": "alice",
        "storiesAnalyzed": 3,
        "brandTestsActive": 1,
        "contentItems": 4,
        "brandScore": 72.5,
        "lastUpdated": "2024-06-01T00:00:00+00:00",
    }
    assert seen[0].url.path == "/rest/v1/ce_metrics"
    assert seen[0].url.params["user_id"] == "eq.alice"
    assert seen[0].headers["apikey"] == "service-key"
    assert seen[0].headers["Authorization"] == "Bearer service-key"


def test_documents_are_upserted_as_json_rows() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[])

    _store(handler).write(collection="content", key="workspace", value=[{"id": "story_1"}])

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/ce_documents"
    assert request.url.params["on_conflict"] == "collection,record_key"
    assert request.headers["Prefer"] == "resolution=merge-duplicates"
    body = json.loads(request.content)
    assert body[0]["collection"] == "content"
    assert body[0]["payload"] == [{"id": "story_1"}]


def test_read_document_payload_and_missing_row() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["record_key"] == "eq.workspace":
            return httpx.Response(200, json=[{"payload": [{"id": "story_1"}]}])
        return httpx.Response(200, json=[])

    store = _store(handler)
    assert store.read(collection="content", key="workspace") == [{"id": "story_1"}]
    assert store.read(collection="content", key="other") is None


def test_activity_append_posts_single_row() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    _store(handler).append(
        collection="activities",
        key="alice",
        item={"id": "a1", "type": "system", "message": "hi", "timestamp": "2024-06-01"},
        limit=50,
    )

    body = json.loads(seen[0].content)
    assert seen[0].url.path == "/rest/v1/ce_activities"
    assert body == [
        {
            "id": "a1",
            "user_id": "alice",
            "activity_type": "system",
            "message": "hi",
            "event_timestamp": "2024-06-01",
            "metadata": {},
        }
    ]


def test_missing_table_raises_backend_error_with_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"code": "42P01", "message": "relation does not exist"})

    with pytest.raises(BackendError) as exc_info:
        _store(handler).read(collection="metrics", key="alice")
    assert exc_info.value.code == "42P01"


def test_transport_failure_raises_backend_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendError, match="GET ce_documents failed"):
        _store(handler).read(collection="media", key="workspace")


def test_fallback_storage_uses_local_when_remote_is_down(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    storage = FallbackStorage(
        primary=_store(handler), secondary=SQLiteLocalStore(db_path=tmp_path / "local.db")
    )

    written = storage.write(collection="metrics", key="alice", value={"contentItems": 1})
    read = storage.read(collection="metrics", key="alice")

    assert written.ok
    assert written.backend == "local"
    assert read.value == {"contentItems": 1}
