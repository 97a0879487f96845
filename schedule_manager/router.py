"""Service-level routes: health, shutdown gate and the consumer WebSocket."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from .dependencies import get_scheduler
from .scheduler.runtime import SchedulerRuntime
from .schemas.schedule import HealthResponse, ShutdownCheckResponse

logger = logging.getLogger("schedule_manager")

VERSION = "1.0.0"

router = APIRouter()


# ── Health ──────────────────────────────────────────────────────────────────────

@router.get("/api/health", response_model=HealthResponse, tags=["Health"])
async def health(runtime: Annotated[SchedulerRuntime, Depends(get_scheduler)]):
    """Return scheduler status and timer counts."""
    active = runtime.shutdown.active_count()
    live = runtime.registry.job_count
    return HealthResponse(
        # an enabled schedule without a timer has a broken definition
        status="ok" if live >= active or not runtime.started else "degraded",
        scheduler_running=runtime.started,
        live_timers=live,
        active_schedules=active,
        version=VERSION,
    )


# ── Shutdown gate ───────────────────────────────────────────────────────────────

@router.get("/api/shutdown/check", response_model=ShutdownCheckResponse, tags=["Shutdown"])
async def shutdown_check(runtime: Annotated[SchedulerRuntime, Depends(get_scheduler)]):
    """Whether quitting now would pause enabled schedules."""
    return ShutdownCheckResponse(**runtime.shutdown.confirmation_prompt())


# ── Consumers ───────────────────────────────────────────────────────────────────

@router.websocket("/ws/schedules")
async def schedule_events(ws: WebSocket):
    """Subscribe to trigger events and schedule/run changes."""
    events = ws.app.state.scheduler.events
    await events.connect(ws)
    try:
        while True:
            # inbound messages are ignored; the loop only watches for disconnect
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        events.disconnect(ws)
