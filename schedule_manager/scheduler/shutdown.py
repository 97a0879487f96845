"""Shutdown coordinator: exposes whether exiting would silence schedules."""

import logging

from .registry import JobRegistry

logger = logging.getLogger("schedule_manager.scheduler.shutdown")

CONFIRM_TITLE = "Scheduled Tasks Running"
CONFIRM_MESSAGE = "You have scheduled tasks enabled."
CONFIRM_DETAIL = "Quitting will pause these schedules until you reopen the app."


class ShutdownCoordinator:
    """Never blocks shutdown itself; callers decide whether to ask the user."""

    def __init__(self, registry: JobRegistry):
        self.registry = registry

    def active_count(self) -> int:
        return self.registry.active_count()

    def requires_confirmation(self) -> bool:
        return self.active_count() > 0

    def confirmation_prompt(self) -> dict:
        count = self.active_count()
        prompt = {"active_count": count, "requires_confirmation": count > 0}
        if count:
            prompt.update(
                title=CONFIRM_TITLE,
                message=CONFIRM_MESSAGE,
                detail=CONFIRM_DETAIL,
                buttons=["Cancel", "Quit"],
            )
        return prompt

    def shutdown(self) -> None:
        live = self.registry.job_count
        self.registry.shutdown()
        logger.info("Discarded %d live timers; they are rebuilt from storage on next start", live)
