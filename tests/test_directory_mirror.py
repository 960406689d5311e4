from __future__ import annotations

from pathlib import Path

import pytest

from custodian_portal.adapters.directory_mirror import DirectoryMirror


def test_put_get_remove(tmp_path: Path) -> None:
    mirror = DirectoryMirror(tmp_path / "mirror")
    assert mirror.get(backup_id="backup_1") is None

    mirror.put(backup_id="backup_1", payload="payload-one")
    mirror.put(backup_id="backup_1", payload="payload-two")

    assert mirror.get(backup_id="backup_1") == "payload-two"
    assert sorted(path.name for path in mirror.root.iterdir()) == ["backup_1.backup"]

    mirror.remove(backup_id="backup_1")
    mirror.remove(backup_id="backup_1")
    assert mirror.get(backup_id="backup_1") is None


def test_rejects_path_traversal(tmp_path: Path) -> None:
    mirror = DirectoryMirror(tmp_path / "mirror")
    with pytest.raises(ValueError, match="Unsafe backup id"):
        mirror.put(backup_id="../escape", payload="x")
