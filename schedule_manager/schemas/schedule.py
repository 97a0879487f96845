"""Pydantic schemas for schedules, runs and trigger events."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, List

from pydantic import BaseModel, field_validator

ScheduleStatus = Literal["running", "success", "error"]
TerminalStatus = Literal["success", "error"]


# ── Request models ──────────────────────────────────────────────────────────────

class CreateScheduleRequest(BaseModel):
    title: str = ""                       # empty means derived from the prompt
    prompt: str
    model: str
    frequency_text: str = ""              # e.g. "every weekday at 9am"
    cron: str                             # 5-field cron expression
    timezone: Optional[str] = None        # IANA timezone, None = server local
    enabled: bool = True

    @field_validator("cron")
    @classmethod
    def _strip_cron(cls, value: str) -> str:
        return " ".join(value.split())


class UpdateScheduleRequest(BaseModel):
    title: Optional[str] = None
    prompt: Optional[str] = None
    model: Optional[str] = None
    frequency_text: Optional[str] = None
    cron: Optional[str] = None
    timezone: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("cron")
    @classmethod
    def _strip_cron(cls, value: Optional[str]) -> Optional[str]:
        return " ".join(value.split()) if value is not None else None


class CompleteRunRequest(BaseModel):
    status: TerminalStatus
    finished_at: Optional[datetime] = None
    output: Optional[str] = None
    error: Optional[str] = None
    conversation_id: Optional[str] = None


class UpdateRunRequest(BaseModel):
    """Partial run update; omitted fields are left untouched."""

    status: Optional[TerminalStatus] = None
    finished_at: Optional[datetime] = None
    output: Optional[str] = None
    error: Optional[str] = None
    conversation_id: Optional[str] = None


class AttachConversationRequest(BaseModel):
    conversation_id: str


# ── Response models ─────────────────────────────────────────────────────────────

class ScheduleResponse(BaseModel):
    id: str
    title: str
    prompt: str
    model: str
    frequency_text: str
    cron: str
    timezone: Optional[str] = None
    enabled: bool
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None
    last_status: Optional[ScheduleStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ScheduleRunResponse(BaseModel):
    id: str
    schedule_id: str
    status: ScheduleStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    output: Optional[str] = None
    error: Optional[str] = None
    conversation_id: Optional[str] = None

    model_config = {"from_attributes": True}


class ScheduleRunWithSchedule(ScheduleRunResponse):
    schedule: Optional[ScheduleResponse] = None


class TriggerEvent(BaseModel):
    """Payload published to consumers when a schedule fires."""

    run_id: str
    schedule_id: str
    title: str
    prompt: str
    model: str
    frequency_text: str
    cron: str
    timezone: Optional[str] = None


class ActiveCountResponse(BaseModel):
    count: int


class ShutdownCheckResponse(BaseModel):
    active_count: int
    requires_confirmation: bool
    title: Optional[str] = None
    message: Optional[str] = None
    detail: Optional[str] = None
    buttons: List[str] = []


class RunNowResponse(BaseModel):
    success: bool
    run_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool
    live_timers: int
    active_schedules: int
    version: str
