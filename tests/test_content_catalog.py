from __future__ import annotations

from pathlib import Path

import pytest

from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.content import ContentCatalog
from custodian_portal.core.errors import NotFoundError, ValidationError
from custodian_portal.core.metrics import MetricsAggregator
from custodian_portal.core.persistence import FallbackStorage, PersistenceAdapter
from custodian_portal.core.search import SearchEngine, SearchOptions


def _services(
    tmp_path: Path,
) -> tuple[ContentCatalog, ActivityLog, MetricsAggregator, SearchEngine]:
    persistence = PersistenceAdapter(
        FallbackStorage(secondary=SQLiteLocalStore(db_path=tmp_path / "portal.db"))
    )
    activity_log = ActivityLog(persistence)
    metrics = MetricsAggregator(persistence, activity_log)
    catalog = ContentCatalog(persistence, activity_log, metrics)
    return catalog, activity_log, metrics, SearchEngine(persistence)


def test_create_story_counts_content_item_and_logs(tmp_path: Path) -> None:
    catalog, activity_log, metrics, _ = _services(tmp_path)
    story = catalog.create_story(
        title="  River crossing  ",
        content="A story about <script>x()</script>connection to country.",
        author_id="alice",
        tags=["culture", "culture", " country "],
    )

    assert story["title"] == "River crossing"
    assert story["content"] == "A story about connection to country."
    assert story["tags"] == ["culture", "country"]
    assert story["status"] == "draft"
    assert metrics.get("alice").content_items == 1
    messages = [item.message for item in activity_log.list("alice")]
    assert messages == [
        "Content items increased to 1",
        f"Created: {story['id']} - River crossing",
    ]


def test_created_story_is_searchable(tmp_path: Path) -> None:
    catalog, _, _, engine = _services(tmp_path)
    story = catalog.create_story(title="Mentoring", content="Giving back", author_id="alice")

    response = engine.search(SearchOptions(query="mentoring"))

    assert [hit.record.record_id for hit in response.results] == [story["id"]]


def test_create_story_validates_fields(tmp_path: Path) -> None:
    catalog, _, metrics, _ = _services(tmp_path)
    with pytest.raises(ValidationError) as exc_info:
        catalog.create_story(
            title=" ", content="x", author_id="alice", status="secret", brand_score=140
        )
    assert len(exc_info.value.errors) == 3
    assert catalog.list_stories() == []
    assert metrics.get("alice").content_items == 0


def test_update_and_filter_stories(tmp_path: Path) -> None:
    catalog, activity_log, _, _ = _services(tmp_path)
    story = catalog.create_story(title="Draft", content="text", author_id="alice")

    updated = catalog.update_story(
        str(story["id"]), {"status": "published", "tags": ["pride"]}, actor_id="bob"
    )

    assert updated["status"] == "published"
    assert updated["tags"] == ["pride"]
    assert catalog.get_story(str(story["id"]))["status"] == "published"
    assert [item["id"] for item in catalog.list_stories("published")] == [story["id"]]
    assert catalog.list_stories("draft") == []
    assert activity_log.list("bob")[0].message == f"Updated: {story['id']} - Draft"


def test_update_rejects_unknown_fields_and_missing_story(tmp_path: Path) -> None:
    catalog, _, _, _ = _services(tmp_path)
    story = catalog.create_story(title="Draft", content="text", author_id="alice")
    with pytest.raises(ValidationError):
        catalog.update_story(str(story["id"]), {"authorId": "mallory"}, actor_id="bob")
    with pytest.raises(ValidationError):
        catalog.update_story(str(story["id"]), {"status": "gone"}, actor_id="bob")
    with pytest.raises(NotFoundError):
        catalog.update_story("story_missing", {"title": "x"}, actor_id="bob")


def test_delete_story(tmp_path: Path) -> None:
    catalog, _, _, _ = _services(tmp_path)
    story = catalog.create_story(title="Old", content="text", author_id="alice")
    catalog.delete_story(str(story["id"]), actor_id="alice")

    assert catalog.list_stories() == []
    with pytest.raises(NotFoundError):
        catalog.delete_story(str(story["id"]), actor_id="alice")


def test_media_lifecycle(tmp_path: Path) -> None:
    catalog, activity_log, _, _ = _services(tmp_path)
    item = catalog.add_media(
        filename="crew.jpg",
        media_type="image",
        url="https://cdn.example.test/crew.jpg",
        uploaded_by="carol",
        name="Crew photo",
        size=2048,
    )

    assert [media["id"] for media in catalog.list_media("image")] == [item["id"]]
    assert catalog.list_media("video") == []
    assert activity_log.list("carol")[0].message == f"Uploaded: {item['id']} - Crew photo"

    catalog.delete_media(str(item["id"]), actor_id="carol")
    assert catalog.list_media() == []
    with pytest.raises(NotFoundError):
        catalog.delete_media(str(item["id"]), actor_id="carol")


def test_add_media_validates_fields(tmp_path: Path) -> None:
    catalog, _, _, _ = _services(tmp_path)
    with pytest.raises(ValidationError) as exc_info:
        catalog.add_media(
            filename="", media_type="hologram", url=" ", uploaded_by="carol", size=-1
        )
    assert len(exc_info.value.errors) == 4
