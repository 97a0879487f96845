import pytest
from fastapi.testclient import TestClient

from main import create_app
from schedule_manager import models  # noqa: F401
from schedule_manager.config import Settings
from schedule_manager.database import Base, create_db_engine, make_session_factory
from schedule_manager.repositories.schedule_repository import ScheduleRepository
from schedule_manager.scheduler.runtime import build_runtime


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'schedules.db'}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(
        RUN_TIMEOUT_MINUTES=0,
        BROADCAST_TIMEOUT_SECONDS=1.0,
        SCHEDULER_ENABLED=True,
        AUTO_CREATE_TABLES=True,
    )


@pytest.fixture
async def runtime(session_factory, test_settings):
    rt = build_runtime(session_factory, test_settings)
    yield rt
    await rt.stop()


@pytest.fixture
def client(session_factory, test_settings):
    app = create_app(session_factory=session_factory, app_settings=test_settings)
    with TestClient(app) as c:
        yield c


def add_schedule(session_factory, **overrides):
    """Insert a schedule straight into storage and return its id."""
    fields = {
        "title": "Daily Summary",
        "prompt": "Summarize my inbox and send an email.",
        "model": "google/gemini-3-flash-preview",
        "frequency_text": "every day at 9am",
        "cron": "0 9 * * *",
        "timezone": None,
        "enabled": True,
    }
    fields.update(overrides)
    with session_factory() as db:
        return ScheduleRepository(db).create(**fields).id


def load_schedule(session_factory, schedule_id):
    with session_factory() as db:
        return ScheduleRepository(db).get(schedule_id)


def set_fields(session_factory, schedule_id, **fields):
    with session_factory() as db:
        ScheduleRepository(db).update(schedule_id, **fields)


class Recorder:
    """In-process consumer that keeps every event it receives."""

    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)

    def events(self, name):
        return [m["data"] for m in self.messages if m["event"] == name]
