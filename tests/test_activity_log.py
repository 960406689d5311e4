from __future__ import annotations

from pathlib import Path

import pytest

from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.activity_log import ActivityLog, new_record_id
from custodian_portal.core.errors import ValidationError
from custodian_portal.core.persistence import FallbackStorage, PersistenceAdapter


def _activity_log(tmp_path: Path, *, limit: int = 50) -> ActivityLog:
    persistence = PersistenceAdapter(
        FallbackStorage(secondary=SQLiteLocalStore(db_path=tmp_path / "portal.db"))
    )
    return ActivityLog(persistence, limit=limit)


def test_record_prepends_newest_first(tmp_path: Path) -> None:
    log = _activity_log(tmp_path)
    log.record("content", "first", "alice")
    log.record("brand", "second", "alice")

    items = log.list("alice")

    assert [item.message for item in items] == ["second", "first"]
    assert items[0].type == "brand"
    assert items[0].user_id == "alice"
    assert items[0].activity_id.startswith("activity_")


def test_log_is_truncated_to_limit(tmp_path: Path) -> None:
    log = _activity_log(tmp_path)
    for index in range(60):
        log.record("system", f"event {index}", "alice")

    items = log.list("alice")

    assert len(items) == 50
    assert items[0].message == "event 59"
    assert items[-1].message == "event 10"
    assert len(log.list("alice", limit=5)) == 5


def test_owners_are_isolated(tmp_path: Path) -> None:
    log = _activity_log(tmp_path)
    log.record("content", "alice only", "alice")
    log.record("content", "shared")

    assert [item.message for item in log.list("alice")] == ["alice only"]
    assert [item.message for item in log.list()] == ["shared"]
    assert log.list("nobody") == []


def test_record_rejects_unknown_type_and_empty_message(tmp_path: Path) -> None:
    log = _activity_log(tmp_path)
    with pytest.raises(ValidationError) as exc_info:
        log.record("gossip", "  ")
    assert len(exc_info.value.errors) == 2
    assert log.list() == []


def test_helper_messages(tmp_path: Path) -> None:
    log = _activity_log(tmp_path)
    assert log.log_content("Story created", "story_1").message == "Story created: story_1"
    assert log.log_brand("Test started", "test_1", "v2").message == "Test started: test_1 - v2"
    assert log.log_system("Backup done").type == "system"


def test_new_record_id_is_unique() -> None:
    ids = {new_record_id("backup") for _ in range(20)}
    assert len(ids) == 20
    assert all(identifier.startswith("backup_") for identifier in ids)


def test_limit_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        _activity_log(tmp_path, limit=0)
