"""APScheduler-backed one-shot deadline scheduler service."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from split_bot.config import SchedulerConfig
from split_bot.core.timeouts import DeadlineScheduler
from split_bot.log import get_logger

logger = get_logger(__name__)


class SchedulerService(DeadlineScheduler):
    """Runs session deadlines as one-shot APScheduler jobs on the bot's event loop."""

    def __init__(self, config: SchedulerConfig):
        self._config = config
        self._scheduler = AsyncIOScheduler(timezone=config.timezone)

    async def start(self) -> None:
        self._scheduler.start()
        logger.info("scheduler_started", timezone=self._config.timezone)

    async def stop(self) -> None:
        self._scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")

    def schedule(self, delay: float, callback: Callable[[], Awaitable[None]]) -> str:
        job_id = uuid.uuid4().hex[:12]
        run_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self._scheduler.add_job(
            callback,
            DateTrigger(run_date=run_at),
            id=job_id,
            misfire_grace_time=None,
        )
        logger.debug("deadline_job_added", job_id=job_id, run_at=str(run_at))
        return job_id

    def cancel(self, handle: str) -> None:
        try:
            self._scheduler.remove_job(handle)
            logger.debug("deadline_job_removed", job_id=handle)
        except JobLookupError:
            # Already fired or removed.
            pass

    def pending(self) -> int:
        return len(self._scheduler.get_jobs())
