from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from custodian_portal.adapters.sqlite_local_store import SQLiteLocalStore
from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.backup import BackupOrchestrator
from custodian_portal.core.persistence import FallbackStorage, PersistenceAdapter
from custodian_portal.core.scheduler import BackupScheduler


def _orchestrator(tmp_path: Path) -> BackupOrchestrator:
    persistence = PersistenceAdapter(
        FallbackStorage(secondary=SQLiteLocalStore(db_path=tmp_path / "portal.db"))
    )
    return BackupOrchestrator(persistence, ActivityLog(persistence))


def test_interval_defaults_to_configured_frequency(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    assert BackupScheduler(orchestrator).interval_seconds == 24 * 60 * 60

    orchestrator.update_configuration(frequency="weekly")
    assert BackupScheduler(orchestrator).interval_seconds == 7 * 24 * 60 * 60

    with pytest.raises(ValueError):
        BackupScheduler(orchestrator, interval_seconds=0)


def test_run_once_creates_backup(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    scheduler = BackupScheduler(orchestrator, interval_seconds=60)

    asyncio.run(scheduler.run_once())

    history = orchestrator.list_history()
    assert len(history) == 1
    assert history[0].description == "Scheduled automatic backup"
    assert scheduler.completed_ticks == 1


def test_run_once_skips_when_disabled(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    orchestrator.update_configuration(enabled=False)
    scheduler = BackupScheduler(orchestrator, interval_seconds=60)

    asyncio.run(scheduler.run_once())

    assert orchestrator.list_history(include_all=True) == []
    assert scheduler.completed_ticks == 0


def test_start_and_stop_run_ticks(tmp_path: Path) -> None:
    orchestrator = _orchestrator(tmp_path)
    scheduler = BackupScheduler(orchestrator, interval_seconds=0.05)

    async def scenario() -> None:
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.3)
        await scheduler.stop()

    asyncio.run(scenario())

    assert not scheduler.running
    assert scheduler.completed_ticks >= 1
    assert orchestrator.list_history(include_all=True)
