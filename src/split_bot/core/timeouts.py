"""Single-shot per-session deadlines."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from split_bot.core.session import Session
from split_bot.log import get_logger

logger = get_logger(__name__)


class DeadlineScheduler(ABC):
    """Capability for running a coroutine callback once after a delay."""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], Awaitable[None]]) -> str:
        """Schedule ``callback`` to run after ``delay`` seconds; return a cancel handle."""
        ...

    @abstractmethod
    def cancel(self, handle: str) -> None:
        """Cancel a pending callback. Unknown or already-fired handles are ignored."""
        ...


class TimeoutManager:
    """Keeps at most one armed deadline per session."""

    def __init__(self, scheduler: DeadlineScheduler):
        self._scheduler = scheduler

    def arm(
        self,
        session: Session,
        duration: float,
        on_expire: Callable[[Session, str], Awaitable[None]],
    ) -> None:
        """Schedule ``on_expire(session, handle)``; any earlier deadline is cancelled first.

        The handle lets the callback tell whether it is still the armed deadline
        by the time it runs.
        """
        self.cancel(session)
        handle: Optional[str] = None

        async def _fire() -> None:
            await on_expire(session, handle)

        handle = self._scheduler.schedule(duration, _fire)
        session.deadline = handle
        logger.debug(
            "deadline_armed",
            chat_id=session.chat_id,
            step=session.step,
            seconds=duration,
        )

    def cancel(self, session: Session) -> None:
        if session.deadline is None:
            return
        self._scheduler.cancel(session.deadline)
        session.deadline = None
        logger.debug("deadline_cancelled", chat_id=session.chat_id)
