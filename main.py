"""Schedule Manager: FastAPI application entry-point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from schedule_manager import models  # noqa: F401  (registers tables on Base)
from schedule_manager.config import Settings, settings
from schedule_manager.database import Base, SessionLocal
from schedule_manager.router import VERSION, router
from schedule_manager.routers.schedule_router import router as schedule_router
from schedule_manager.scheduler.cron_engine import CronEngine
from schedule_manager.scheduler.runtime import build_runtime

# ── Logging ─────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger("schedule_manager")


def create_app(
    session_factory: Optional[sessionmaker] = None,
    app_settings: Optional[Settings] = None,
    engine: Optional[CronEngine] = None,
) -> FastAPI:
    session_factory = session_factory or SessionLocal
    app_settings = app_settings or settings

    # ── Lifespan ────────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app_settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=session_factory.kw["bind"])

        runtime = build_runtime(session_factory, app_settings, engine=engine)
        app.state.scheduler = runtime
        if app_settings.SCHEDULER_ENABLED:
            await runtime.start()
        logger.info(
            "Schedule Manager started with %d live timers, %d enabled schedules",
            runtime.registry.job_count,
            runtime.shutdown.active_count(),
        )
        yield
        await runtime.stop()
        logger.info("Schedule Manager shutting down")

    # ── App ─────────────────────────────────────────────────────────────────────

    app = FastAPI(
        title="Schedule Manager",
        description=(
            "Recurring prompt schedules backed by cron timers. "
            "Publishes trigger events to consumers and tracks every run."
        ),
        version=VERSION,
        lifespan=lifespan,
        root_path=app_settings.ROOT_PATH,
    )
    app.state.session_factory = session_factory

    # ── Global exception handler ───────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def _unhandled_exception(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "error": type(exc).__name__,
                "path": str(request.url.path),
                "method": request.method,
            },
        )

    app.include_router(router)
    app.include_router(schedule_router, prefix="/api/schedules")
    return app


app = create_app()


# ── Entry-point ─────────────────────────────────────────────────────────────────

def main():
    uvicorn.run(
        "main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
