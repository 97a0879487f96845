"""Scheduler runtime: wires the scheduler components for one process lifetime."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..config import Settings
from ..ws_manager import ConnectionManager
from .cron_engine import CronEngine
from .dispatcher import TriggerDispatcher
from .reaper import RunReaper
from .registry import JobRegistry
from .runs import RunLifecycleTracker
from .shutdown import ShutdownCoordinator

logger = logging.getLogger("schedule_manager.scheduler.runtime")


@dataclass
class SchedulerRuntime:
    engine: CronEngine
    events: ConnectionManager
    registry: JobRegistry
    dispatcher: TriggerDispatcher
    runs: RunLifecycleTracker
    shutdown: ShutdownCoordinator
    reaper: Optional[RunReaper] = None
    started: bool = False

    async def start(self) -> None:
        """Rebuild every live timer from storage."""
        if self.started:
            return
        await self.registry.reschedule_all()
        if self.reaper is not None:
            self.reaper.start()
        self.started = True

    async def stop(self) -> None:
        if self.reaper is not None:
            await self.reaper.stop()
        self.shutdown.shutdown()
        self.started = False


def build_runtime(
    session_factory: sessionmaker,
    settings: Settings,
    engine: Optional[CronEngine] = None,
) -> SchedulerRuntime:
    engine = engine or CronEngine()
    events = ConnectionManager(delivery_timeout=settings.BROADCAST_TIMEOUT_SECONDS)
    registry = JobRegistry(session_factory, engine)
    dispatcher = TriggerDispatcher(session_factory, registry, events)
    registry.set_fire_handler(dispatcher.fire)
    runs = RunLifecycleTracker(session_factory, events)

    reaper = None
    if settings.RUN_TIMEOUT_MINUTES > 0:
        reaper = RunReaper(
            session_factory,
            runs,
            timeout=timedelta(minutes=settings.RUN_TIMEOUT_MINUTES),
            interval_seconds=settings.RUN_REAPER_INTERVAL_SECONDS,
        )
        logger.info("Run reaper enabled (timeout=%d min)", settings.RUN_TIMEOUT_MINUTES)

    return SchedulerRuntime(
        engine=engine,
        events=events,
        registry=registry,
        dispatcher=dispatcher,
        runs=runs,
        shutdown=ShutdownCoordinator(registry),
        reaper=reaper,
    )
