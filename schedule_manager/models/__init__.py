"""SQLAlchemy models: import all models here so Alembic can discover them."""

from .schedule import Schedule, ScheduleRun

__all__ = ["Schedule", "ScheduleRun"]
