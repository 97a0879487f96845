"""Recurring schedule engine: timers, trigger dispatch and run lifecycle."""

from .cron_engine import CronEngine, CronTimer, InvalidScheduleError
from .dispatcher import TriggerDispatcher, TRIGGER_EVENT
from .reaper import RunReaper
from .registry import JobRegistry
from .runs import RunLifecycleTracker
from .runtime import SchedulerRuntime, build_runtime
from .shutdown import ShutdownCoordinator

__all__ = [
    "CronEngine", "CronTimer", "InvalidScheduleError",
    "TriggerDispatcher", "TRIGGER_EVENT", "RunReaper", "JobRegistry",
    "RunLifecycleTracker", "SchedulerRuntime", "build_runtime",
    "ShutdownCoordinator",
]
