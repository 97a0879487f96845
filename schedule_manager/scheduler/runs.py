"""Run lifecycle tracker: terminal status write-back for schedule runs."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from ..database import utc_now
from ..models.schedule import ScheduleRun
from ..repositories.schedule_repository import ScheduleRunRepository
from ..ws_manager import ConnectionManager

logger = logging.getLogger("schedule_manager.scheduler.runs")

TERMINAL_STATUSES = ("success", "error")
_UNSET = object()


class RunLifecycleTracker:
    def __init__(self, session_factory: sessionmaker, events: Optional[ConnectionManager] = None):
        self._session_factory = session_factory
        self.events = events

    def list_runs(self, schedule_id: Optional[str] = None) -> List[ScheduleRun]:
        """Runs with their schedule loaded, newest ``started_at`` first."""
        with self._session_factory() as db:
            return ScheduleRunRepository(db).list(schedule_id)

    def get_run(self, run_id: str) -> Optional[ScheduleRun]:
        with self._session_factory() as db:
            return ScheduleRunRepository(db).get(run_id)

    async def complete_run(
        self,
        run_id: str,
        status: str,
        finished_at: Optional[datetime] = None,
        output=_UNSET,
        error=_UNSET,
        conversation_id=_UNSET,
    ) -> Optional[ScheduleRun]:
        """Move a run to ``success`` or ``error`` and mirror it onto the schedule.

        Omitted fields keep their stored value, so a conversation attached
        earlier survives a completion that does not repeat it. Completing an
        already finished run is accepted; the last write wins.
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Run status must be one of {TERMINAL_STATUSES}, got '{status}'")

        changes = {"status": status}
        if finished_at is not None:
            changes["finished_at"] = finished_at
        for key, value in (("output", output), ("error", error), ("conversation_id", conversation_id)):
            if value is not _UNSET:
                changes[key] = value
        return await self._apply(run_id, changes)

    async def attach_conversation(self, run_id: str, conversation_id: str) -> Optional[ScheduleRun]:
        return await self._apply(run_id, {"conversation_id": conversation_id})

    async def update_run(self, run_id: str, changes: dict) -> Optional[ScheduleRun]:
        """Partial update as sent by a consumer; ``status`` routes through completion."""
        changes = dict(changes)
        status = changes.pop("status", None)
        if status is not None:
            return await self.complete_run(run_id, status, **changes)
        if "finished_at" in changes:
            # finishing time only means something together with a terminal status
            changes.pop("finished_at")
        return await self._apply(run_id, changes)

    async def _apply(self, run_id: str, changes: dict) -> Optional[ScheduleRun]:
        with self._session_factory() as db:
            repo = ScheduleRunRepository(db)
            if "status" in changes and "finished_at" not in changes:
                # a repeated completion keeps the first finishing time
                current = repo.get(run_id)
                if current is not None:
                    changes["finished_at"] = current.finished_at or utc_now()
            run = repo.update(run_id, changes)
        if run is None:
            logger.warning("Run '%s' not found", run_id)
            return None

        if "status" in changes:
            logger.info("Run '%s' of schedule '%s' finished: %s", run.id, run.schedule_id, run.status)
        if self.events is not None:
            self.events.publish("run_updated", {
                "run_id": run.id,
                "schedule_id": run.schedule_id,
                "status": run.status,
                "conversation_id": run.conversation_id,
            })
        return run
