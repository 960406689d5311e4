"""Filesystem mirror that keeps a second copy of backup payloads."""

from __future__ import annotations

import re
from pathlib import Path

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class DirectoryMirror:
    """Store one ``<backup_id>.backup`` file per payload under a root directory."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, backup_id: str) -> Path:
        if not _SAFE_ID.match(backup_id):
            raise ValueError(f"Unsafe backup id: {backup_id!r}")
        return self._root / f"{backup_id}.backup"

    def put(self, *, backup_id: str, payload: str) -> None:
        path = self._path(backup_id)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(path)

    def get(self, *, backup_id: str) -> str | None:
        path = self._path(backup_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def remove(self, *, backup_id: str) -> None:
        self._path(backup_id).unlink(missing_ok=True)
