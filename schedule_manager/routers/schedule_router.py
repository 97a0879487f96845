from typing import List, Optional

from fastapi import APIRouter, Depends

from ..dependencies import get_schedule_service
from ..schemas.schedule import (
    ActiveCountResponse,
    AttachConversationRequest,
    CompleteRunRequest,
    CreateScheduleRequest,
    RunNowResponse,
    ScheduleResponse,
    ScheduleRunResponse,
    ScheduleRunWithSchedule,
    UpdateRunRequest,
    UpdateScheduleRequest,
)
from ..services.schedule_service import ScheduleService

router = APIRouter(tags=["Schedules"])


# ── Runs (declared before /{schedule_id} so the paths do not collide) ──────────

@router.get("/runs", response_model=List[ScheduleRunWithSchedule])
async def list_schedule_runs(
    schedule_id: Optional[str] = None,
    svc: ScheduleService = Depends(get_schedule_service),
):
    """List runs, newest first, optionally for one schedule."""
    return await svc.list_runs(schedule_id)


@router.get("/runs/{run_id}", response_model=ScheduleRunWithSchedule)
async def get_schedule_run(run_id: str, svc: ScheduleService = Depends(get_schedule_service)):
    return await svc.get_run(run_id)


@router.patch("/runs/{run_id}", response_model=ScheduleRunResponse)
async def update_schedule_run(
    run_id: str,
    req: UpdateRunRequest,
    svc: ScheduleService = Depends(get_schedule_service),
):
    """Partial run update from the execution consumer."""
    return await svc.update_run(run_id, req)


@router.post("/runs/{run_id}/complete", response_model=ScheduleRunResponse)
async def complete_schedule_run(
    run_id: str,
    req: CompleteRunRequest,
    svc: ScheduleService = Depends(get_schedule_service),
):
    """Report the terminal status of a run."""
    return await svc.complete_run(run_id, req)


@router.post("/runs/{run_id}/conversation", response_model=ScheduleRunResponse)
async def attach_run_conversation(
    run_id: str,
    req: AttachConversationRequest,
    svc: ScheduleService = Depends(get_schedule_service),
):
    return await svc.attach_conversation(run_id, req.conversation_id)


@router.get("/active-count", response_model=ActiveCountResponse)
async def active_schedule_count(svc: ScheduleService = Depends(get_schedule_service)):
    """Number of enabled schedules."""
    return ActiveCountResponse(count=await svc.active_count())


# ── Schedule CRUD ───────────────────────────────────────────────────────────────

@router.get("", response_model=List[ScheduleResponse])
async def list_schedules(svc: ScheduleService = Depends(get_schedule_service)):
    return await svc.list_schedules()


@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_schedule(
    req: CreateScheduleRequest,
    svc: ScheduleService = Depends(get_schedule_service),
):
    """Create a schedule and arm its timer when enabled."""
    return await svc.create_schedule(req)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(schedule_id: str, svc: ScheduleService = Depends(get_schedule_service)):
    return await svc.get_schedule(schedule_id)


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: str,
    req: UpdateScheduleRequest,
    svc: ScheduleService = Depends(get_schedule_service),
):
    """Update a schedule; the timer is rebuilt from the stored definition."""
    return await svc.update_schedule(schedule_id, req)


@router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(schedule_id: str, svc: ScheduleService = Depends(get_schedule_service)):
    """Delete a schedule together with its run history."""
    await svc.delete_schedule(schedule_id)


@router.post("/{schedule_id}/run", response_model=RunNowResponse)
async def run_schedule_now(schedule_id: str, svc: ScheduleService = Depends(get_schedule_service)):
    """Trigger a run immediately. Disabled schedules are left alone."""
    run = await svc.run_now(schedule_id)
    return RunNowResponse(success=run is not None, run_id=run.id if run else None)
