"""Trigger dispatcher: turns a timer expiry into a run and a trigger event."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..models.schedule import ScheduleRun
from ..repositories.schedule_repository import ScheduleRepository, ScheduleRunRepository
from ..schemas.schedule import TriggerEvent
from ..ws_manager import ConnectionManager
from .registry import JobRegistry

logger = logging.getLogger("schedule_manager.scheduler.dispatcher")

TRIGGER_EVENT = "schedule:run"


class TriggerDispatcher:
    def __init__(self, session_factory: sessionmaker, registry: JobRegistry, events: ConnectionManager):
        self._session_factory = session_factory
        self.registry = registry
        self.events = events

    async def fire(self, schedule_id: str) -> Optional[ScheduleRun]:
        """Create a running run, stamp the schedule and publish the trigger event.

        Enabled state is checked here rather than at install time: a timer may
        expire just after its schedule was disabled or deleted, and that fire
        is dropped silently.
        """
        if self.registry.is_retired(schedule_id):
            logger.debug("Schedule '%s' is being deleted; fire skipped", schedule_id)
            return None

        with self._session_factory() as db:
            schedule = ScheduleRepository(db).get(schedule_id)
            if not schedule or not schedule.enabled:
                logger.debug("Schedule '%s' missing or disabled; fire skipped", schedule_id)
                return None

            run = ScheduleRunRepository(db).start(schedule)
            schedule.next_run_at = self.registry.next_invocation(schedule_id)
            db.commit()

            event = TriggerEvent(
                run_id=run.id,
                schedule_id=schedule.id,
                title=schedule.title,
                prompt=schedule.prompt,
                model=schedule.model,
                frequency_text=schedule.frequency_text,
                cron=schedule.cron,
                timezone=schedule.timezone,
            )

        delivered = self.events.publish(TRIGGER_EVENT, event.model_dump(mode="json"))
        logger.info(
            "Schedule '%s' triggered run '%s' (%d consumers)", schedule_id, run.id, delivered
        )
        return run

    async def run_now(self, schedule_id: str) -> Optional[ScheduleRun]:
        """Manual trigger; same run and broadcast semantics as a timer fire."""
        return await self.fire(schedule_id)
