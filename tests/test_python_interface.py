from __future__ import annotations

from typing import Any

import httpx
import pytest

from custodian_portal.api.contracts import RestoreRequest, SearchRequest, StoryCreateRequest
from custodian_portal.api.python_interface import AuthSession, PortalApiClient

_METRICS = {
    "owner_id": "user-1",
    "stories_analyzed": 2,
    "brand_tests_active": 1,
    "content_items": 3,
    "brand_score": 80.0,
    "last_updated_utc": "2024-05-01T00:00:00+00:00",
}


def _session() -> AuthSession:
    return AuthSession(access_token="token-123", api_base_url="http://127.0.0.1:8000")


def test_login_parses_token(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, json: object, timeout: float) -> httpx.Response:
        request = httpx.Request("POST", url)
        if str(url).endswith("/auth/login"):
            return httpx.Response(
                status_code=200,
                request=request,
                json={"access_token": "token-123", "token_type": "bearer", "expires_at_utc": "x"},
            )
        return httpx.Response(status_code=201, request=request, json={})

    monkeypatch.setattr("custodian_portal.api.python_interface.httpx.post", fake_post)
    client = PortalApiClient(api_base_url="http://127.0.0.1:8000/")
    client.register(email="alice@example.com", password="password123", display_name="Alice")
    session = client.login(email="alice@example.com", password="password123")
    assert session.access_token == "token-123"
    assert session.api_base_url == "http://127.0.0.1:8000"
    assert session.headers == {"Authorization": "Bearer token-123"}


def test_login_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, json: object, timeout: float) -> httpx.Response:
        return httpx.Response(
            status_code=401,
            request=httpx.Request("POST", url),
            json={"detail": "Invalid credentials"},
        )

    monkeypatch.setattr("custodian_portal.api.python_interface.httpx.post", fake_post)
    with pytest.raises(httpx.HTTPStatusError):
        PortalApiClient().login(email="alice@example.com", password="wrong-pass1")


def test_get_metrics_and_activities(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    def fake_get(
        url: str, headers: dict[str, str], timeout: float, params: object = None
    ) -> httpx.Response:
        calls.append({"url": url, "headers": headers, "params": params})
        request = httpx.Request("GET", url)
        if url.endswith("/activities"):
            activity = {
                "activity_id": "activity_1",
                "type": "content",
                "message": "Created: story_1 - Mining",
                "timestamp_utc": "2024-05-01T00:00:00+00:00",
            }
            return httpx.Response(status_code=200, request=request, json=[activity])
        return httpx.Response(status_code=200, request=request, json=_METRICS)

    monkeypatch.setattr("custodian_portal.api.python_interface.httpx.get", fake_get)
    client = PortalApiClient()

    metrics = client.get_metrics(session=_session())
    activities = client.list_activities(session=_session(), limit=5)

    assert metrics.content_items == 3
    assert activities[0].message == "Created: story_1 - Mining"
    assert calls[0]["headers"] == {"Authorization": "Bearer token-123"}
    assert calls[1]["params"] == {"limit": 5}


def test_create_story_and_search_send_contract_payloads(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    sent: dict[str, object] = {}

    def fake_post(
        url: str, json: dict[str, Any], headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        sent[url.rsplit("/", 1)[-1]] = json
        request = httpx.Request("POST", url)
        if url.endswith("/stories"):
            story = {
                "story_id": "story_1",
                "title": json["title"],
                "content": json["content"],
                "author_id": "user-1",
                "tags": json["tags"],
                "status": json["status"],
                "created_at_utc": "2024-05-01T00:00:00+00:00",
                "updated_at_utc": "2024-05-01T00:00:00+00:00",
            }
            return httpx.Response(status_code=201, request=request, json=story)
        return httpx.Response(
            status_code=200,
            request=request,
            json={
                "results": [],
                "total": 0,
                "facets": {},
                "suggestions": [],
                "search_time_ms": 1.5,
                "warnings": [],
            },
        )

    monkeypatch.setattr("custodian_portal.api.python_interface.httpx.post", fake_post)
    client = PortalApiClient()

    story = client.create_story(
        session=_session(),
        story=StoryCreateRequest(title="Mining", content="Safety first", tags=["mining"]),
    )
    response = client.search(session=_session(), request=SearchRequest(query="mining"))

    assert story.story_id == "story_1"
    assert story.tags == ["mining"]
    assert response.total == 0
    search_body = sent["search"]
    assert isinstance(search_body, dict)
    assert search_body["query"] == "mining"
    assert search_body["sort_by"] == "relevance"


def test_restore_backup_parses_report(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(
        url: str, json: dict[str, Any], headers: dict[str, str], timeout: float
    ) -> httpx.Response:
        assert json["dry_run"] is True
        assert timeout == 120.0
        return httpx.Response(
            status_code=200,
            request=httpx.Request("POST", url),
            json={
                "backup_id": json["backup_id"],
                "started_at_utc": "2024-05-01T00:00:00+00:00",
                "finished_at_utc": "2024-05-01T00:00:01+00:00",
                "status": "success",
                "items": [],
                "total_items": 0,
                "successful_items": 0,
                "failed_items": 0,
                "warnings": ["Dry run mode - no data was actually restored"],
                "errors": [],
            },
        )

    monkeypatch.setattr("custodian_portal.api.python_interface.httpx.post", fake_post)
    report = PortalApiClient().restore_backup(
        session=_session(), request=RestoreRequest(backup_id="backup_1", dry_run=True)
    )
    assert report.backup_id == "backup_1"
    assert report.warnings == ["Dry run mode - no data was actually restored"]
