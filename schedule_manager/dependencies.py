"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .scheduler.runtime import SchedulerRuntime
from .services.schedule_service import ScheduleService


def get_scheduler(request: Request) -> SchedulerRuntime:
    """The runtime built in the app lifespan; one per process."""
    return request.app.state.scheduler


def get_schedule_service(
    runtime: Annotated[SchedulerRuntime, Depends(get_scheduler)],
    db: Session = Depends(get_db),
) -> ScheduleService:
    return ScheduleService(db, runtime)
