"""Optional sweep that fails runs whose consumer never reported back."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..database import utc_now
from ..repositories.schedule_repository import ScheduleRunRepository
from .runs import RunLifecycleTracker

logger = logging.getLogger("schedule_manager.scheduler.reaper")


class RunReaper:
    def __init__(
        self,
        session_factory: sessionmaker,
        tracker: RunLifecycleTracker,
        timeout: timedelta,
        interval_seconds: float = 60.0,
    ):
        self._session_factory = session_factory
        self._tracker = tracker
        self.timeout = timeout
        self.interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """Mark every run older than the timeout and still ``running`` as errored."""
        cutoff = utc_now() - self.timeout
        with self._session_factory() as db:
            stale_ids = [run.id for run in ScheduleRunRepository(db).list_running_since(cutoff)]

        minutes = int(self.timeout.total_seconds() // 60)
        for run_id in stale_ids:
            await self._tracker.complete_run(
                run_id,
                "error",
                error=f"Run timed out after {minutes} minutes without a result",
            )
        if stale_ids:
            logger.warning("Reaped %d stuck runs", len(stale_ids))
        return len(stale_ids)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Run reaper sweep failed")
