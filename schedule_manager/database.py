"""SQLAlchemy engine, session factory and declarative base."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterator

from fastapi import Request
from sqlalchemy import DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from .config import settings

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as naive UTC.

    SQLite drops tzinfo on the way in, so values are normalised to UTC before
    binding and tagged as UTC again when loaded.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_db_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # The scheduler touches the database from the event loop thread while
        # TestClient/uvicorn may serve requests from another one.
        connect_args["check_same_thread"] = False
    db_engine = create_engine(url, connect_args=connect_args, future=True)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


def make_session_factory(db_engine: Engine) -> sessionmaker:
    # Rows handed to the scheduler outlive their session.
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def get_db(request: Request) -> Iterator[Session]:
    """Request-scoped session from the factory the app was built with."""
    factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = factory()
    try:
        yield db
    finally:
        db.close()
