"""Job registry: maps schedule ids to live cron timers mirrored into ``next_run_at``."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional, Set

from sqlalchemy.orm import sessionmaker

from ..repositories.schedule_repository import ScheduleRepository
from .cron_engine import CronEngine, CronTimer, InvalidScheduleError

logger = logging.getLogger("schedule_manager.scheduler.registry")

FireHandler = Callable[[str], Awaitable[object]]


class JobRegistry:
    """Owns every live timer for this process.

    Every mutation cancels the current timer for its id before anything else,
    and installation replaces whatever timer sits in the map at that moment,
    so interleaved calls converge on one surviving timer per id.
    """

    def __init__(self, session_factory: sessionmaker, engine: CronEngine, on_fire: Optional[FireHandler] = None):
        self._session_factory = session_factory
        self._engine = engine
        self._on_fire = on_fire
        self._jobs: Dict[str, CronTimer] = {}
        self._retired: Set[str] = set()
        self._pending: Set[asyncio.Task] = set()

    def set_fire_handler(self, on_fire: FireHandler) -> None:
        self._on_fire = on_fire

    # ── Queries ─────────────────────────────────────────────────────────────────

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    def has_job(self, schedule_id: str) -> bool:
        return schedule_id in self._jobs

    def get_job(self, schedule_id: str) -> Optional[CronTimer]:
        return self._jobs.get(schedule_id)

    def next_invocation(self, schedule_id: str) -> Optional[datetime]:
        job = self._jobs.get(schedule_id)
        return job.next_invocation() if job else None

    def is_retired(self, schedule_id: str) -> bool:
        return schedule_id in self._retired

    def active_count(self) -> int:
        """Enabled schedules in storage, whether or not their timer installed."""
        with self._session_factory() as db:
            return ScheduleRepository(db).count_enabled()

    # ── Mutations ───────────────────────────────────────────────────────────────

    async def upsert(self, schedule_id: str) -> Optional[CronTimer]:
        self._cancel(schedule_id)
        if schedule_id in self._retired:
            return None

        with self._session_factory() as db:
            repo = ScheduleRepository(db)
            schedule = repo.get(schedule_id)
            if not schedule or not schedule.enabled:
                if schedule:
                    repo.update(schedule_id, next_run_at=None)
                return None

            try:
                timer = self._engine.schedule(
                    schedule.cron,
                    schedule.timezone,
                    lambda: self._spawn_fire(schedule_id),
                )
            except InvalidScheduleError as exc:
                logger.warning("Schedule '%s' not installed: %s", schedule_id, exc)
                repo.update(schedule_id, last_status="error", next_run_at=None)
                return None
            except Exception:
                logger.exception("Failed to schedule job '%s'", schedule_id)
                repo.update(schedule_id, last_status="error", next_run_at=None)
                return None

            self._install(schedule_id, timer)
            repo.update(schedule_id, next_run_at=timer.next_invocation())

        logger.info(
            "Schedule '%s' armed (cron=%r tz=%s next=%s)",
            schedule_id, timer.cron, timer.tz or "local", timer.next_invocation(),
        )
        return timer

    async def remove(self, schedule_id: str, *, retire: bool = False) -> None:
        """Cancel the timer and clear ``next_run_at``.

        ``retire`` marks the id as being deleted; it is not armed or fired again
        until ``release`` is called.
        """
        if retire:
            self._retired.add(schedule_id)
        self._cancel(schedule_id)

        with self._session_factory() as db:
            ScheduleRepository(db).update(schedule_id, next_run_at=None)

    def release(self, schedule_id: str) -> None:
        """End a retirement, once the row is gone or its deletion was abandoned."""
        self._retired.discard(schedule_id)

    async def reschedule_all(self) -> int:
        with self._session_factory() as db:
            schedule_ids = [s.id for s in ScheduleRepository(db).list_enabled()]

        for schedule_id in schedule_ids:
            try:
                await self.upsert(schedule_id)
            except Exception:
                logger.exception("Failed to reschedule '%s'", schedule_id)

        logger.info("Rescheduled %d/%d enabled schedules", self.job_count, len(schedule_ids))
        return self.job_count

    def shutdown(self) -> None:
        """Drop every live timer; they are rebuilt from storage on next start."""
        for timer in self._jobs.values():
            timer.cancel()
        self._jobs.clear()
        for task in list(self._pending):
            task.cancel()

    # ── Internals ───────────────────────────────────────────────────────────────

    def _cancel(self, schedule_id: str) -> None:
        existing = self._jobs.pop(schedule_id, None)
        if existing:
            existing.cancel()

    def _install(self, schedule_id: str, timer: CronTimer) -> None:
        self._cancel(schedule_id)
        self._jobs[schedule_id] = timer

    def _spawn_fire(self, schedule_id: str) -> None:
        if self._on_fire is None:
            logger.warning("Timer for '%s' fired with no dispatcher attached", schedule_id)
            return
        task = asyncio.get_running_loop().create_task(self._on_fire(schedule_id))
        self._pending.add(task)
        task.add_done_callback(self._fire_done)

    def _fire_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to trigger schedule: %s", exc, exc_info=exc)
