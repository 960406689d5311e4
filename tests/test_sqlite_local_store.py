from __future__ import annotations

from pathlib import Path

import pytest

from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore


def test_write_read_and_overwrite_document(tmp_path: Path) -> None:
    store = SQLiteLocalStore(db_path=tmp_path / "local.db")
    assert store.read(collection="metrics", key="alice") is None

    store.write(collection="metrics", key="alice", value={"storiesAnalyzed": 1})
    store.write(collection="metrics", key="alice", value={"storiesAnalyzed": 2})

    assert store.read(collection="metrics", key="alice") == {"storiesAnalyzed": 2}
    assert store.read(collection="metrics", key="bob") is None


def test_append_prepends_and_truncates(tmp_path: Path) -> None:
    store = SQLiteLocalStore(db_path=tmp_path / "local.db")
    for index in range(5):
        store.append(collection="activities", key="alice", item={"id": index}, limit=3)

    assert store.read(collection="activities", key="alice") == [{"id": 4}, {"id": 3}, {"id": 2}]


def test_append_rejects_non_positive_limit(tmp_path: Path) -> None:
    store = SQLiteLocalStore(db_path=tmp_path / "local.db")
    with pytest.raises(ValueError, match="limit"):
        store.append(collection="activities", key="alice", item={"id": 1}, limit=0)


def test_delete_clear_and_list_keys(tmp_path: Path) -> None:
    store = SQLiteLocalStore(db_path=tmp_path / "local.db")
    store.write(collection="metrics", key="alice", value={})
    store.write(collection="metrics", key="bob", value={})
    store.write(collection="activities", key="alice", value=[])

    assert sorted(store.list_keys(collection="metrics")) == ["alice", "bob"]

    store.delete(collection="metrics", key="bob")
    assert store.list_keys(collection="metrics") == ["alice"]

    store.clear(key="alice")
    assert store.list_keys(collection="metrics") == []
    assert store.read(collection="activities", key="alice") is None

    store.write(collection="content", key="workspace", value=[{"id": "s1"}])
    store.clear()
    assert store.read(collection="content", key="workspace") is None


def test_documents_survive_reopen(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "local.db"
    SQLiteLocalStore(db_path=db_path).write(collection="settings", key="backup", value={"a": 1})
    assert SQLiteLocalStore(db_path=db_path).read(collection="settings", key="backup") == {"a": 1}
