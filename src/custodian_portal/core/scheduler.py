"""Fixed-interval asyncio timer that runs automatic backups."""

from __future__ import annotations

import asyncio
import logging

from custodian_portal.core.backup import FREQUENCY_SECONDS, BackupOrchestrator

logger = logging.getLogger(__name__)


class BackupScheduler:
    """Launch a backup, then retention cleanup, every `interval_seconds`.

    Ticks do not wait for the previous backup; a slow backup may overlap the
    next one. Interval drift is not corrected.
    """

    def __init__(
        self,
        orchestrator: BackupOrchestrator,
        *,
        interval_seconds: float | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        if interval_seconds is None:
            interval_seconds = FREQUENCY_SECONDS[orchestrator.configuration.frequency]
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()
        self.completed_ticks = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("backup.scheduler_started interval_seconds=%s", self._interval_seconds)

    async def stop(self) -> None:
        """Cancel the timer and wait for in-flight ticks to finish."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("backup.scheduler_stopped ticks=%s", self.completed_ticks)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            tick = asyncio.get_running_loop().create_task(self.run_once())
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)

    async def run_once(self) -> None:
        """One tick: back up if enabled, then prune expired backups."""
        if not self._orchestrator.configuration.enabled:
            logger.info("backup.scheduler_skipped reason=disabled")
            return
        outcome = await asyncio.to_thread(
            self._orchestrator.create_backup, "Scheduled automatic backup"
        )
        if not outcome.success:
            logger.warning("backup.scheduled_failed error=%s", outcome.error)
        await asyncio.to_thread(self._orchestrator.cleanup_old_backups)
        self.completed_ticks += 1
