"""Schedule and ScheduleRun SQLAlchemy models."""

import uuid

from sqlalchemy import Column, String, Boolean, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..database import Base, UTCDateTime, utc_now


class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Payload handed to the execution consumer
    title = Column(String, nullable=False)
    prompt = Column(Text, nullable=False)
    model = Column(String, nullable=False)
    frequency_text = Column(String, nullable=False, default="")

    # Definition
    cron = Column(String, nullable=False)               # 5-field cron expression
    timezone = Column(String, nullable=True)            # IANA zone, NULL = local
    enabled = Column(Boolean, nullable=False, default=True, index=True)

    # Runtime state
    last_run_at = Column(UTCDateTime, nullable=True)
    next_run_at = Column(UTCDateTime, nullable=True)    # mirrors the live timer
    last_status = Column(String, nullable=True)         # running | success | error

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    runs = relationship(
        "ScheduleRun",
        back_populates="schedule",
        cascade="all, delete-orphan",
    )


class ScheduleRun(Base):
    __tablename__ = "schedule_runs"
    __table_args__ = (
        Index("ix_schedule_runs_schedule_started", "schedule_id", "started_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    schedule_id = Column(String, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False, default="running", index=True)  # running | success | error
    started_at = Column(UTCDateTime, nullable=False, default=utc_now)
    finished_at = Column(UTCDateTime, nullable=True)
    output = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    conversation_id = Column(String, nullable=True)     # set by the execution consumer

    schedule = relationship("Schedule", back_populates="runs")
