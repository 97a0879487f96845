"""Cron engine: next-instant arithmetic and cancellable asyncio countdowns."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from tzlocal import get_localzone

logger = logging.getLogger("schedule_manager.scheduler.cron_engine")

CRON_FIELDS = 5


class InvalidScheduleError(ValueError):
    """Raised when a cron expression or timezone cannot be scheduled."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_timezone(name: Optional[str], local: Optional[tzinfo] = None) -> tzinfo:
    """Return the zone for ``name``; ``None`` means the process local zone.

    The local zone is a full tz database zone, so its daylight-saving rules
    apply to every future instant rather than today's UTC offset.
    """
    if not name:
        return local or get_localzone()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidScheduleError(f"Unknown timezone '{name}'") from exc


def validate_cron(expr: str) -> str:
    expr = " ".join((expr or "").split())
    if len(expr.split(" ")) != CRON_FIELDS:
        raise InvalidScheduleError(
            f"Cron expression '{expr}' must have {CRON_FIELDS} fields "
            "(minute hour day-of-month month day-of-week)"
        )
    if not croniter.is_valid(expr):
        raise InvalidScheduleError(f"Invalid cron expression '{expr}'")
    return expr


class CronTimer:
    """A live countdown for one cron definition.

    Re-arms itself after every expiry so ``next_invocation()`` always reports
    the upcoming instant, including from inside the fire callback.
    """

    def __init__(
        self,
        engine: "CronEngine",
        cron: str,
        tz: Optional[str],
        on_fire: Callable[[], None],
        loop: asyncio.AbstractEventLoop,
    ):
        self.cron = cron
        self.tz = tz
        self._engine = engine
        self._on_fire = on_fire
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._next: Optional[datetime] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def next_invocation(self) -> Optional[datetime]:
        if self._cancelled:
            return None
        return self._next

    def cancel(self) -> None:
        """Stop the countdown. Safe to call more than once."""
        self._cancelled = True
        self._next = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def arm(self, after: datetime) -> None:
        """Count down to the first cron instant strictly after ``after``."""
        self._next = self._engine.compute_next(self.cron, self.tz, after)
        delay = max(0.0, (self._next - self._engine.now()).total_seconds())
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self._loop.call_later(delay, self._expire)

    def _expire(self) -> None:
        if self._cancelled:
            return
        fired_at = self._next
        try:
            self.arm(fired_at)
        except InvalidScheduleError:
            # tz database changed under us; nothing left to count down to
            logger.exception("Could not re-arm timer for '%s'", self.cron)
            self.cancel()
        self._on_fire()


class CronEngine:
    """Capability object: compute next instants and start countdowns."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now, local_zone: Optional[tzinfo] = None):
        self._clock = clock
        self._local_zone = local_zone

    def now(self) -> datetime:
        return self._clock()

    def compute_next(self, cron: str, tz: Optional[str] = None, from_: Optional[datetime] = None) -> datetime:
        """Next fire instant strictly after ``from_`` (default now), in UTC."""
        expr = validate_cron(cron)
        zone = resolve_timezone(tz, self._local_zone)
        base = from_ or self.now()
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        try:
            nxt = croniter(expr, base.astimezone(zone)).get_next(datetime)
        except (ValueError, KeyError) as exc:
            raise InvalidScheduleError(f"Cannot compute next run for '{expr}': {exc}") from exc
        return nxt.astimezone(timezone.utc)

    def schedule(self, cron: str, tz: Optional[str], on_fire: Callable[[], None]) -> CronTimer:
        """Start a countdown on the running loop; raises InvalidScheduleError."""
        loop = asyncio.get_running_loop()
        timer = CronTimer(self, validate_cron(cron), tz, on_fire, loop)
        timer.arm(self.now())
        return timer
