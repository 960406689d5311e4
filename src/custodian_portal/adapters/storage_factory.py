"""Factory for the local-plus-optional-remote persistence stack."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

import httpx

from custodian_portal.adapters.directory_mirror import DirectoryMirror
from custodian_portal.adapters.environment import float_env, int_env, str_env
from custodian_portal.adapters.remote_table_store import RemoteTableStore
from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.backup import BackupConfiguration, BackupOrchestrator
from custodian_portal.core.persistence import FallbackStorage, PersistenceAdapter
from custodian_portal.domain.ports import Notifier

DEFAULT_DB_PATH = Path("work/local/custodian.db")

logger = logging.getLogger(__name__)


def resolve_db_path(db_path: Path | None = None) -> Path:
    if db_path is not None:
        return db_path
    raw = os.environ.get("CUSTODIAN_DB_PATH", "").strip()
    return Path(raw) if raw else DEFAULT_DB_PATH


def create_persistence(
    *,
    db_path: Path | None = None,
    remote_url: str | None = None,
    remote_key: str | None = None,
    client: httpx.Client | None = None,
) -> PersistenceAdapter:
    """Build persistence; the remote store is used only when both URL and key are known."""
    local = SQLiteLocalStore(db_path=resolve_db_path(db_path))
    url = remote_url or str_env("CUSTODIAN_REMOTE_URL")
    key = remote_key or str_env("CUSTODIAN_REMOTE_KEY")
    if url and key:
        remote = RemoteTableStore(
            base_url=url,
            api_key=key,
            timeout_seconds=float_env(
                "CUSTODIAN_REMOTE_TIMEOUT_SECONDS", 10.0, minimum=0.5, maximum=120.0
            ),
            client=client,
        )
        logger.info("storage.configured primary=remote fallback=local url=%s", remote.base_url)
        return PersistenceAdapter(FallbackStorage(primary=remote, secondary=local))
    if url or key:
        logger.warning(
            "storage.remote_incomplete reason=both CUSTODIAN_REMOTE_URL and "
            "CUSTODIAN_REMOTE_KEY are required"
        )
    logger.info("storage.configured primary=local")
    return PersistenceAdapter(FallbackStorage(secondary=local))


def backup_configuration_from_env() -> BackupConfiguration | None:
    """Override the stored backup policy when frequency or retention env vars are set."""
    frequency = str_env("CUSTODIAN_BACKUP_FREQUENCY")
    retention = str_env("CUSTODIAN_BACKUP_RETENTION_DAYS")
    if frequency is None and retention is None:
        return None
    defaults = BackupConfiguration()
    return replace(
        defaults,
        frequency=frequency or defaults.frequency,  # type: ignore[arg-type]
        retention_days=int_env(
            "CUSTODIAN_BACKUP_RETENTION_DAYS",
            defaults.retention_days,
            minimum=1,
            maximum=3650,
        ),
    )


def create_backup_orchestrator(
    persistence: PersistenceAdapter,
    activity_log: ActivityLog,
    *,
    notifier: Notifier | None = None,
    mirror_dir: Path | None = None,
) -> BackupOrchestrator:
    """Wire the orchestrator from CUSTODIAN_BACKUP_* settings."""
    if mirror_dir is None:
        raw_mirror = str_env("CUSTODIAN_BACKUP_MIRROR_DIR")
        mirror_dir = Path(raw_mirror) if raw_mirror else None
    orchestrator = BackupOrchestrator(
        persistence,
        activity_log,
        encryption_key=str_env("CUSTODIAN_BACKUP_ENCRYPTION_KEY"),
        notifier=notifier,
        mirror=DirectoryMirror(mirror_dir) if mirror_dir is not None else None,
        configuration=backup_configuration_from_env(),
    )
    logger.info(
        "backup.configured encoding=%s mirror=%s",
        orchestrator.encoding,
        mirror_dir if mirror_dir is not None else "none",
    )
    return orchestrator
