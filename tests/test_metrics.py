from __future__ import annotations

from pathlib import Path

import pytest

from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.errors import ValidationError
from custodian_portal.core.metrics import MetricsAggregator
from custodian_portal.core.persistence import FallbackStorage, PersistenceAdapter


def _services(tmp_path: Path) -> tuple[PersistenceAdapter, ActivityLog, MetricsAggregator]:
    persistence = PersistenceAdapter(
        FallbackStorage(secondary=SQLiteLocalStore(db_path=tmp_path / "portal.db"))
    )
    activity_log = ActivityLog(persistence)
    return persistence, activity_log, MetricsAggregator(persistence, activity_log)


def test_defaults_are_zero(tmp_path: Path) -> None:
    _, _, metrics = _services(tmp_path)
    current = metrics.get("alice")
    assert current.owner_id == "alice"
    assert current.stories_analyzed == 0
    assert current.content_items == 0
    assert current.brand_score == 0.0


def test_story_analyzed_also_counts_content_item(tmp_path: Path) -> None:
    _, activity_log, metrics = _services(tmp_path)
    metrics.increment_stories_analyzed("alice")
    change = metrics.increment_stories_analyzed("alice")

    assert change.persisted
    assert change.metrics.stories_analyzed == 2
    assert change.metrics.content_items == 2
    assert metrics.get("alice").content_items == 2
    activities = activity_log.list("alice")
    assert [item.message for item in activities] == [
        "New story analyzed - Total: 2",
        "New story analyzed - Total: 1",
    ]
    assert activities[0].type == "content"


def test_increment_logs_one_activity_per_change(tmp_path: Path) -> None:
    _, activity_log, metrics = _services(tmp_path)
    change = metrics.increment("contentItems", "alice", 3)

    assert change.metrics.content_items == 3
    assert change.activity.message == "Content items increased to 3"
    assert len(activity_log.list("alice")) == 1


def test_counters_clamp_at_zero(tmp_path: Path) -> None:
    _, _, metrics = _services(tmp_path)
    metrics.increment("contentItems", "alice", 2)
    change = metrics.increment("contentItems", "alice", -5)

    assert change.metrics.content_items == 0
    assert change.activity.message == "Content items decreased to 0"


def test_brand_score_is_validated_before_writing(tmp_path: Path) -> None:
    _, activity_log, metrics = _services(tmp_path)
    change = metrics.update_brand_score(80, "alice")
    assert change.activity.message == "Brand score increased to 80%"
    assert change.activity.type == "analytics"

    with pytest.raises(ValidationError):
        metrics.update_brand_score(120, "alice")
    assert metrics.get("alice").brand_score == 80.0
    assert len(activity_log.list("alice")) == 1


def test_active_brand_tests_message(tmp_path: Path) -> None:
    _, _, metrics = _services(tmp_path)
    started = metrics.set_active_brand_tests(2, "alice")
    lowered = metrics.set_active_brand_tests(1, "alice")
    assert started.activity.message == "New brand test started - Active tests: 2"
    assert lowered.activity.message == "Active brand tests set to 1"


def test_unknown_counter_is_rejected(tmp_path: Path) -> None:
    _, _, metrics = _services(tmp_path)
    with pytest.raises(ValidationError):
        metrics.increment("pageViews", "alice")


def test_failed_save_still_records_activity(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    persistence, activity_log, metrics = _services(tmp_path)
    original_save = persistence.save

    def fake_save(collection: str, record: object, owner_id: str | None = None) -> bool:
        if collection == "metrics":
            return False
        return original_save(collection, record, owner_id)

    monkeypatch.setattr(persistence, "save", fake_save)

    change = metrics.increment_stories_analyzed("alice")

    assert not change.persisted
    assert metrics.get("alice").stories_analyzed == 0
    assert [item.message for item in activity_log.list("alice")] == [
        "New story analyzed - Total: 1"
    ]
