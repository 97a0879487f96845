"""Schedule repository: CRUD over schedules and their runs."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from ..database import utc_now
from ..models.schedule import Schedule, ScheduleRun

logger = logging.getLogger("schedule_manager.repositories.schedule")


class ScheduleRepository:
    """Database-backed schedule store."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, **fields) -> Schedule:
        schedule = Schedule(**fields)
        self.db.add(schedule)
        self.db.commit()
        self.db.refresh(schedule)
        return schedule

    def get(self, schedule_id: str) -> Optional[Schedule]:
        return self.db.get(Schedule, schedule_id)

    def list_all(self) -> List[Schedule]:
        stmt = select(Schedule).order_by(Schedule.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_enabled(self) -> List[Schedule]:
        stmt = select(Schedule).where(Schedule.enabled.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def count_enabled(self) -> int:
        stmt = select(func.count()).select_from(Schedule).where(Schedule.enabled.is_(True))
        return self.db.execute(stmt).scalar_one()

    def update(self, schedule_id: str, **fields) -> Optional[Schedule]:
        schedule = self.get(schedule_id)
        if not schedule:
            return None
        for key, value in fields.items():
            setattr(schedule, key, value)
        self.db.commit()
        self.db.refresh(schedule)
        return schedule

    def delete(self, schedule_id: str) -> bool:
        schedule = self.get(schedule_id)
        if not schedule:
            return False
        # relationship cascade removes the runs even where FK cascades are off
        self.db.delete(schedule)
        self.db.commit()
        return True


class ScheduleRunRepository:
    """Database-backed run history."""

    def __init__(self, db: Session):
        self.db = db

    def start(self, schedule: Schedule, started_at: Optional[datetime] = None) -> ScheduleRun:
        """Insert a running run and stamp its schedule in a single commit."""
        now = started_at or utc_now()
        run = ScheduleRun(schedule_id=schedule.id, status="running", started_at=now)
        self.db.add(run)
        schedule.last_run_at = now
        schedule.last_status = "running"
        self.db.commit()
        return run

    def get(self, run_id: str) -> Optional[ScheduleRun]:
        stmt = (
            select(ScheduleRun)
            .options(joinedload(ScheduleRun.schedule))
            .where(ScheduleRun.id == run_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list(self, schedule_id: Optional[str] = None) -> List[ScheduleRun]:
        stmt = select(ScheduleRun).options(joinedload(ScheduleRun.schedule))
        if schedule_id:
            stmt = stmt.where(ScheduleRun.schedule_id == schedule_id)
        stmt = stmt.order_by(ScheduleRun.started_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_running_since(self, before: datetime) -> List[ScheduleRun]:
        stmt = (
            select(ScheduleRun)
            .where(ScheduleRun.status == "running")
            .where(ScheduleRun.started_at < before)
        )
        return list(self.db.execute(stmt).scalars().all())

    def update(self, run_id: str, changes: dict) -> Optional[ScheduleRun]:
        """Apply only the supplied fields; a terminal status is mirrored onto the schedule."""
        run = self.get(run_id)
        if not run:
            return None
        for key, value in changes.items():
            setattr(run, key, value)
        status = changes.get("status")
        if status and run.schedule is not None:
            run.schedule.last_status = status
        self.db.commit()
        return run
