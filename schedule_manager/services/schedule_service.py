"""Schedule management service: CRUD on schedules, kept in step with live timers."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models.schedule import Schedule, ScheduleRun
from ..repositories.schedule_repository import ScheduleRepository
from ..scheduler.runtime import SchedulerRuntime
from ..schemas.schedule import (
    CreateScheduleRequest,
    UpdateScheduleRequest,
    CompleteRunRequest,
    UpdateRunRequest,
    ScheduleResponse,
)

logger = logging.getLogger("schedule_manager.services.schedule_service")

DEFAULT_TITLE = "Scheduled Task"


def build_schedule_title(prompt: str) -> str:
    """Short title derived from the prompt when the user gave none."""
    trimmed = (prompt or "").strip()
    if not trimmed:
        return DEFAULT_TITLE
    return f"{trimmed[:45]}..." if len(trimmed) > 48 else trimmed


def _row_to_dict(row: Schedule) -> dict:
    """Convert an ORM row to a plain dict for WS broadcast."""
    return ScheduleResponse.model_validate(row).model_dump(mode="json")


class ScheduleService:
    def __init__(self, db: Session, runtime: SchedulerRuntime):
        self.db = db
        self.repo = ScheduleRepository(db)
        self.runtime = runtime

    # ── Schedules ───────────────────────────────────────────────────────────────

    async def list_schedules(self) -> List[Schedule]:
        return self.repo.list_all()

    async def get_schedule(self, schedule_id: str) -> Schedule:
        schedule = self.repo.get(schedule_id)
        if not schedule:
            raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found.")
        return schedule

    async def create_schedule(self, req: CreateScheduleRequest) -> Schedule:
        schedule = self.repo.create(
            title=req.title.strip() or build_schedule_title(req.prompt),
            prompt=req.prompt,
            model=req.model,
            frequency_text=req.frequency_text,
            cron=req.cron,
            timezone=req.timezone or None,
            enabled=req.enabled,
        )
        await self.runtime.registry.upsert(schedule.id)
        self.db.refresh(schedule)

        await self.runtime.events.broadcast("schedule_created", _row_to_dict(schedule))
        logger.info("Schedule '%s' created (cron=%r enabled=%s)", schedule.id, schedule.cron, schedule.enabled)
        return schedule

    async def update_schedule(self, schedule_id: str, req: UpdateScheduleRequest) -> Schedule:
        updates = req.model_dump(exclude_unset=True)
        # only the timezone may be cleared explicitly
        updates = {k: v for k, v in updates.items() if v is not None or k == "timezone"}
        if "title" in updates and not (updates["title"] or "").strip():
            prompt = updates.get("prompt") or (await self.get_schedule(schedule_id)).prompt
            updates["title"] = build_schedule_title(prompt)
        if "timezone" in updates:
            updates["timezone"] = updates["timezone"] or None

        schedule = self.repo.update(schedule_id, **updates)
        if not schedule:
            raise HTTPException(status_code=404, detail=f"Schedule {schedule_id} not found.")

        await self.runtime.registry.upsert(schedule.id)
        self.db.refresh(schedule)

        await self.runtime.events.broadcast("schedule_updated", _row_to_dict(schedule))
        logger.info("Schedule '%s' updated: %s", schedule_id, sorted(updates))
        return schedule

    async def delete_schedule(self, schedule_id: str) -> None:
        await self.get_schedule(schedule_id)

        registry = self.runtime.registry
        # Timer goes first so nothing fires for a half-deleted schedule.
        await registry.remove(schedule_id, retire=True)
        try:
            self.db.expire_all()
            self.repo.delete(schedule_id)
        except Exception:
            self.db.rollback()
            registry.release(schedule_id)
            logger.warning("Delete of schedule '%s' failed, restoring its timer", schedule_id)
            await registry.upsert(schedule_id)
            raise
        registry.release(schedule_id)

        await self.runtime.events.broadcast("schedule_deleted", {"schedule_id": schedule_id})
        logger.info("Schedule '%s' deleted", schedule_id)

    async def run_now(self, schedule_id: str) -> Optional[ScheduleRun]:
        await self.get_schedule(schedule_id)
        return await self.runtime.dispatcher.run_now(schedule_id)

    async def active_count(self) -> int:
        return self.runtime.shutdown.active_count()

    # ── Runs ────────────────────────────────────────────────────────────────────

    async def list_runs(self, schedule_id: Optional[str] = None) -> List[ScheduleRun]:
        return self.runtime.runs.list_runs(schedule_id)

    async def get_run(self, run_id: str) -> ScheduleRun:
        run = self.runtime.runs.get_run(run_id)
        if not run:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found.")
        return run

    async def update_run(self, run_id: str, req: UpdateRunRequest) -> ScheduleRun:
        run = await self.runtime.runs.update_run(run_id, req.model_dump(exclude_unset=True))
        if not run:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found.")
        return run

    async def complete_run(self, run_id: str, req: CompleteRunRequest) -> ScheduleRun:
        fields = req.model_dump(exclude_unset=True)
        run = await self.runtime.runs.complete_run(run_id, **fields)
        if not run:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found.")
        return run

    async def attach_conversation(self, run_id: str, conversation_id: str) -> ScheduleRun:
        run = await self.runtime.runs.attach_conversation(run_id, conversation_id)
        if not run:
            raise HTTPException(status_code=404, detail=f"Run {run_id} not found.")
        return run
