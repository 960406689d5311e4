from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from custodian_portal.api.app import create_app

HOPEFUL = "Unlock your potential with confidence and hope"

_ENV_VARS = (
    "CUSTODIAN_DB_PATH",
    "CUSTODIAN_REMOTE_URL",
    "CUSTODIAN_REMOTE_KEY",
    "CUSTODIAN_ADMIN_EMAILS",
    "CUSTODIAN_BACKUP_SCHEDULER",
    "CUSTODIAN_BACKUP_MIRROR_DIR",
    "CUSTODIAN_BACKUP_ENCRYPTION_KEY",
    "CUSTODIAN_NOTIFY_WEBHOOK_URL",
    "CUSTODIAN_EXPORT_DIR",
)


def _client(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, *, admin_emails: str = ""
) -> TestClient:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    if admin_emails:
        monkeypatch.setenv("CUSTODIAN_ADMIN_EMAILS", admin_emails)
    return TestClient(create_app(tmp_path / "portal.db", export_dir=tmp_path / "exports"))


def _auth_headers(client: TestClient, email: str) -> dict[str, str]:
    register = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "password123", "display_name": "Alice"},
    )
    assert register.status_code == 201
    login = client.post("/api/v1/auth/login", json={"email": email, "password": "password123"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def test_health_and_root_endpoints(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    health = client.get("/healthz")
    assert health.status_code == 200
    assert health.json() == {"status": "ok", "service": "custodian_portal"}

    root = client.get("/api/v1")
    assert root.status_code == 200
    assert root.json()["auth"] == "bearer-token"
    assert "/api/v1/search" in root.json()["endpoints"]


def test_openapi_lists_portal_tags(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    payload = client.get("/openapi.json").json()
    assert payload["info"]["title"] == "custodian_portal API"
    assert {"search", "brand-tests", "backups"} <= {tag["name"] for tag in payload["tags"]}


def test_protected_routes_require_bearer_token(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    missing = client.get("/api/v1/metrics")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Missing bearer token"

    invalid = client.get("/api/v1/metrics", headers={"Authorization": "Bearer nope"})
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid or expired token"


def test_register_conflict_and_bad_login(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    me = client.get("/api/v1/me", headers=headers)
    assert me.json()["email"] == "alice@example.com"
    assert me.json()["role"] == "staff"

    duplicate = client.post(
        "/api/v1/auth/register",
        json={"email": "ALICE@example.com", "password": "password123", "display_name": "A"},
    )
    assert duplicate.status_code == 409

    wrong = client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "password999"}
    )
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid credentials"


def test_weak_password_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "bob@example.com", "password": "passwordonly", "display_name": "Bob"},
    )
    assert response.status_code == 422


def test_metrics_endpoints_record_activity(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")

    initial = client.get("/api/v1/metrics", headers=headers).json()
    assert initial["stories_analyzed"] == 0
    assert initial["brand_score"] == 0

    analyzed = client.post("/api/v1/metrics/stories-analyzed", headers=headers)
    assert analyzed.status_code == 200
    assert analyzed.json()["metrics"]["stories_analyzed"] == 1
    assert analyzed.json()["metrics"]["content_items"] == 1
    assert analyzed.json()["activity"]["message"] == "New story analyzed - Total: 1"
    assert analyzed.json()["persisted"] is True

    increment = client.post(
        "/api/v1/metrics/contentItems/increment", json={"amount": 2}, headers=headers
    )
    assert increment.json()["activity"]["message"] == "Content items increased to 3"

    score = client.put("/api/v1/metrics/brandScore", json={"value": 80}, headers=headers)
    assert score.json()["metrics"]["brand_score"] == 80
    assert score.json()["activity"]["message"] == "Brand score increased to 80%"

    activities = client.get("/api/v1/activities", headers=headers).json()
    assert [item["message"] for item in activities] == [
        "Brand score increased to 80%",
        "Content items increased to 3",
        "New story analyzed - Total: 1",
    ]


def test_metric_validation_errors_return_422(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")

    unknown = client.post("/api/v1/metrics/bogus/increment", json={"amount": 1}, headers=headers)
    assert unknown.status_code == 422
    assert unknown.json()["errors"][0].startswith("counter must be one of")

    out_of_range = client.put("/api/v1/metrics/brandScore", json={"value": 140}, headers=headers)
    assert out_of_range.status_code == 422
    assert client.get("/api/v1/metrics", headers=headers).json()["brand_score"] == 0


def test_activity_feed_is_scoped_to_user(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    alice = _auth_headers(client, "alice@example.com")
    bob = _auth_headers(client, "bob@example.com")

    created = client.post(
        "/api/v1/activities", json={"type": "system", "message": "Hello"}, headers=alice
    )
    assert created.status_code == 201
    assert created.json()["activity_id"].startswith("activity_")
    client.post("/api/v1/activities", json={"type": "brand", "message": "Again"}, headers=alice)

    assert len(client.get("/api/v1/activities?limit=1", headers=alice).json()) == 1
    assert client.get("/api/v1/activities", headers=bob).json() == []

    rejected = client.post(
        "/api/v1/activities", json={"type": "gossip", "message": "x"}, headers=alice
    )
    assert rejected.status_code == 422


def test_story_crud_flow(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")

    created = client.post(
        "/api/v1/content/stories",
        json={
            "title": "Mining careers",
            "content": "From training to a mining career.",
            "tags": ["mining", "mining", "employment"],
            "brand_score": 82,
        },
        headers=headers,
    )
    assert created.status_code == 201
    story = created.json()
    assert story["tags"] == ["mining", "employment"]
    assert story["status"] == "draft"
    assert story["brand_score"] == 82

    updated = client.put(
        f"/api/v1/content/stories/{story['story_id']}",
        json={"status": "published", "brand_score": 90},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "published"
    assert updated.json()["brand_score"] == 90

    published = client.get("/api/v1/content/stories?status=published", headers=headers).json()
    assert [item["story_id"] for item in published] == [story["story_id"]]
    assert client.get("/api/v1/metrics", headers=headers).json()["content_items"] == 1

    deleted = client.delete(f"/api/v1/content/stories/{story['story_id']}", headers=headers)
    assert deleted.status_code == 204
    missing = client.delete(f"/api/v1/content/stories/{story['story_id']}", headers=headers)
    assert missing.status_code == 404


def test_media_flow(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")

    created = client.post(
        "/api/v1/content/media",
        json={
            "filename": "crew.jpg",
            "media_type": "image",
            "url": "https://cdn.example.test/crew.jpg",
            "name": "Crew photo",
            "size": 2048,
        },
        headers=headers,
    )
    assert created.status_code == 201
    media_id = created.json()["media_id"]

    images = client.get("/api/v1/content/media?media_type=image", headers=headers).json()
    assert [item["media_id"] for item in images] == [media_id]
    assert client.get("/api/v1/content/media?media_type=video", headers=headers).json() == []

    assert client.delete(f"/api/v1/content/media/{media_id}", headers=headers).status_code == 204


def test_search_and_history_flow(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    story = client.post(
        "/api/v1/content/stories",
        json={"title": "Mining careers", "content": "A mining journey.", "tags": ["mining"]},
        headers=headers,
    ).json()
    client.post(
        "/api/v1/content/stories",
        json={"title": "Mining safety", "content": "Safety first.", "tags": ["mining"]},
        headers=headers,
    )

    response = client.post(
        "/api/v1/search",
        json={"query": "mining", "filters": {"content_types": ["story"]}},
        headers=headers,
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 2
    assert {hit["type"] for hit in payload["results"]} == {"story"}
    assert payload["results"][0]["highlights"]["title"]
    assert {"value": "story", "count": 2} in payload["facets"]["contentTypes"]

    quick = client.get("/api/v1/search/quick?q=mining&limit=1", headers=headers).json()
    assert len(quick) == 1
    assert client.get("/api/v1/search/recent", headers=headers).json() == ["mining"]
    assert client.get("/api/v1/search/suggestions?q=min", headers=headers).json() == ["mining"]

    similar = client.get(f"/api/v1/search/similar/{story['story_id']}", headers=headers).json()
    assert [hit["title"] for hit in similar] == ["Mining safety"]

    cleared = client.delete("/api/v1/search/history", headers=headers)
    assert cleared.status_code == 204
    assert client.get("/api/v1/search/recent", headers=headers).json() == []


def test_search_rejects_invalid_options(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    response = client.post("/api/v1/search", json={"limit": 0, "offset": -1}, headers=headers)
    assert response.status_code == 422
    assert len(response.json()["errors"]) == 2


def test_saved_search_flow(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    client.post(
        "/api/v1/content/stories",
        json={"title": "Mining careers", "content": "A mining journey.", "status": "published"},
        headers=headers,
    )

    saved = client.post(
        "/api/v1/search/saved",
        json={"name": "Published mining", "query": "mining", "filters": {"status": ["published"]}},
        headers=headers,
    )
    assert saved.status_code == 201
    search_id = saved.json()["search_id"]
    assert saved.json()["filters"] == {"status": ["published"]}

    run = client.post(f"/api/v1/search/saved/{search_id}/run", headers=headers)
    assert run.json()["total"] == 1
    listed = client.get("/api/v1/search/saved", headers=headers).json()
    assert [item["use_count"] for item in listed] == [1]

    assert client.delete(f"/api/v1/search/saved/{search_id}", headers=headers).status_code == 204
    gone = client.post(f"/api/v1/search/saved/{search_id}/run", headers=headers)
    assert gone.status_code == 404


def test_brand_test_lifecycle_and_comparison(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")

    strong = client.post(
        "/api/v1/brand-tests",
        json={
            "name": "Potential",
            "description": "Hopeful headline",
            "content": {"headlines": [HOPEFUL], "key_messages": ["Pride in work"]},
            "target_audiences": ["youth"],
        },
        headers=headers,
    )
    assert strong.status_code == 201
    variant = strong.json()
    assert variant["status"] == "draft"
    assert variant["content"] == {"headlines": [HOPEFUL], "keyMessages": ["Pride in work"]}
    weak = client.post(
        "/api/v1/brand-tests",
        json={
            "name": "Plain",
            "content": {"headlines": ["Buy now"]},
            "target_audiences": ["youth"],
        },
        headers=headers,
    ).json()

    started = client.post(f"/api/v1/brand-tests/{variant['variant_id']}/start", headers=headers)
    assert started.json()["status"] == "active"
    assert client.get("/api/v1/metrics", headers=headers).json()["brand_tests_active"] == 1
    again = client.post(f"/api/v1/brand-tests/{variant['variant_id']}/start", headers=headers)
    assert again.status_code == 422

    analysis = client.post(f"/api/v1/brand-tests/{variant['variant_id']}/analyze", headers=headers)
    assert analysis.status_code == 200
    assert analysis.json()["variant_id"] == variant["variant_id"]
    history = client.get(
        f"/api/v1/brand-tests/history?variant_id={variant['variant_id']}", headers=headers
    ).json()
    assert len(history) == 1

    comparison = client.post(
        "/api/v1/brand-tests/compare",
        json={"variant_ids": [weak["variant_id"], variant["variant_id"]]},
        headers=headers,
    )
    assert comparison.json()["winner"] == variant["variant_id"]

    completed = client.post(
        f"/api/v1/brand-tests/{variant['variant_id']}/complete", headers=headers
    )
    assert completed.json()["status"] == "completed"
    listed = client.get("/api/v1/brand-tests?status=completed", headers=headers).json()
    assert [item["variant_id"] for item in listed] == [variant["variant_id"]]


def test_ab_messaging_endpoint(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    response = client.post(
        "/api/v1/brand-tests/ab-messaging",
        json={"original": "Buy now", "variants": [HOPEFUL], "context": "headline"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["winning_message"] == HOPEFUL
    assert [item["score"] for item in response.json()["performance_scores"]] == [0.0, 33.0]

    unknown = client.post("/api/v1/brand-tests/test_missing/start", headers=headers)
    assert unknown.status_code == 404


def test_backup_flow_for_staff_and_admin(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch, admin_emails="admin@example.com")
    staff = _auth_headers(client, "alice@example.com")
    admin = _auth_headers(client, "admin@example.com")
    assert client.get("/api/v1/me", headers=admin).json()["role"] == "admin"

    created = client.post("/api/v1/backups", json={"description": "Before import"}, headers=staff)
    assert created.status_code == 201
    backup_id = created.json()["backup_id"]
    assert created.json()["success"] is True

    history = client.get("/api/v1/backups", headers=staff).json()
    assert [item["backup_id"] for item in history] == [backup_id]
    assert history[0]["created_by"] == "Alice"
    assert history[0]["encoding"] == "base64"
    verified = client.get(f"/api/v1/backups/{backup_id}/verify", headers=staff).json()
    assert verified == {"valid": True, "errors": []}
    statistics = client.get("/api/v1/backups/statistics", headers=staff).json()
    assert statistics["totalBackups"] == 1

    restore_body = {"backup_id": backup_id, "dry_run": True}
    forbidden = client.post("/api/v1/backups/restore", json=restore_body, headers=staff)
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Admin access required"
    report = client.post("/api/v1/backups/restore", json=restore_body, headers=admin)
    assert report.status_code == 200
    assert "Dry run mode - no data was actually restored" in report.json()["warnings"]

    assert client.delete(f"/api/v1/backups/{backup_id}", headers=staff).status_code == 403
    assert client.delete(f"/api/v1/backups/{backup_id}", headers=admin).status_code == 204
    assert client.get("/api/v1/backups", headers=staff).json() == []


def test_backup_configuration_is_admin_only(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch, admin_emails="admin@example.com")
    staff = _auth_headers(client, "alice@example.com")
    admin = _auth_headers(client, "admin@example.com")

    current = client.get("/api/v1/backups/config", headers=staff).json()
    assert current["frequency"] == "daily"
    assert current["retention_days"] == 30

    body = {"frequency": "weekly", "retention_days": 7}
    assert client.put("/api/v1/backups/config", json=body, headers=staff).status_code == 403
    updated = client.put("/api/v1/backups/config", json=body, headers=admin)
    assert updated.status_code == 200
    assert updated.json()["frequency"] == "weekly"
    assert client.get("/api/v1/backups/config", headers=staff).json()["retention_days"] == 7

    invalid = client.put("/api/v1/backups/config", json={"retention_days": 0}, headers=admin)
    assert invalid.status_code == 422


def test_restore_unknown_backup_returns_404(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch, admin_emails="admin@example.com")
    admin = _auth_headers(client, "admin@example.com")
    response = client.post(
        "/api/v1/backups/restore", json={"backup_id": "backup_missing"}, headers=admin
    )
    assert response.status_code == 404


def test_admin_data_clear_and_role_update(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _client(tmp_path, monkeypatch, admin_emails="admin@example.com")
    staff = _auth_headers(client, "alice@example.com")
    admin = _auth_headers(client, "admin@example.com")
    client.post("/api/v1/metrics/stories-analyzed", headers=staff)
    staff_id = client.get("/api/v1/me", headers=staff).json()["user_id"]

    assert client.delete("/api/v1/admin/data", headers=staff).status_code == 403
    cleared = client.delete(f"/api/v1/admin/data?owner_id={staff_id}", headers=admin)
    assert cleared.status_code == 200
    assert cleared.json() == {"cleared": True, "owner_id": staff_id}
    assert client.get("/api/v1/metrics", headers=staff).json()["stories_analyzed"] == 0

    forbidden = client.put(
        f"/api/v1/admin/users/{staff_id}/role", json={"role": "admin"}, headers=staff
    )
    assert forbidden.status_code == 403
    promoted = client.put(
        f"/api/v1/admin/users/{staff_id}/role", json={"role": "admin"}, headers=admin
    )
    assert promoted.json()["role"] == "admin"
    missing = client.put("/api/v1/admin/users/nobody/role", json={"role": "staff"}, headers=admin)
    assert missing.status_code == 404


def test_export_and_download(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    client.post("/api/v1/metrics/stories-analyzed", headers=headers)

    exported = client.post("/api/v1/exports", json={"type": "json"}, headers=headers)
    assert exported.status_code == 200
    payload = exported.json()
    assert payload["success"] is True
    assert payload["filename"].startswith("custodian-economy-export-executive-")
    assert payload["download_url"] == f"/api/v1/exports/{payload['filename']}"

    download = client.get(payload["download_url"], headers=headers)
    assert download.status_code == 200
    assert isinstance(json.loads(download.content), dict)
    assert client.get("/api/v1/exports/missing.json", headers=headers).status_code == 404

    pdf = client.post("/api/v1/exports", json={"type": "pdf"}, headers=headers).json()
    assert pdf["success"] is False
    assert pdf["error"] == "Unsupported export format: pdf"


def test_system_status_reports_runtime(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = _client(tmp_path, monkeypatch)
    headers = _auth_headers(client, "alice@example.com")
    payload = client.get("/api/v1/system/status", headers=headers).json()
    assert payload["backup_scheduler_running"] is False
    assert payload["backup_encoding"] == "base64"
    assert payload["notifier"] == "LoggingNotifier"
    assert payload["storage"]
