"""Session open / send / arm / finish / expire, shared by every flow.

All methods except ``expire`` assume the caller already holds the chat's lock
from ``SessionStore.lock``. ``expire`` runs from the scheduler and takes the
lock itself.
"""

from __future__ import annotations

from typing import Optional

from split_bot.config import SessionConfig
from split_bot.core import render
from split_bot.core.artifacts import ArtifactTracker
from split_bot.core.session import AwaitingLogin, Session, SessionStore, State
from split_bot.core.timeouts import TimeoutManager
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerAdapter, MessengerError
from split_bot.messenger.models import Keyboard, OutgoingMessage

logger = get_logger(__name__)


class SessionLifecycle:
    def __init__(
        self,
        adapter: MessengerAdapter,
        store: SessionStore,
        timeouts: TimeoutManager,
        artifacts: ArtifactTracker,
        config: SessionConfig,
    ):
        self.adapter = adapter
        self.store = store
        self.timeouts = timeouts
        self.artifacts = artifacts
        self.config = config

    async def open(self, chat_id: str, owner: str, state: State) -> Session:
        """Create the chat's session, tearing down any previous one first."""
        await self.discard(chat_id)
        session = Session(chat_id=chat_id, owner=owner, state=state)
        self.store.put(chat_id, session)
        logger.info("session_opened", chat_id=chat_id, owner=owner, step=session.step)
        return session

    async def discard(self, chat_id: str) -> bool:
        """Run the cleanup protocol for the chat's session, if any. Returns True if one existed."""
        session = self.store.get(chat_id)
        if session is None:
            return False
        await self.finish(session)
        return True

    async def finish(self, session: Session) -> None:
        """Cancel the deadline, retract all artifacts and drop the session."""
        self.timeouts.cancel(session)
        await self.artifacts.flush(session)
        if self.store.get(session.chat_id) is session:
            self.store.remove(session.chat_id)
        logger.info("session_closed", chat_id=session.chat_id, step=session.step)

    async def send(
        self,
        session: Session,
        text: str,
        buttons: Optional[Keyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> str:
        """Send a message as part of the session's transient UI and record it."""
        message_id = await self.adapter.send_message(
            OutgoingMessage(
                chat_id=session.chat_id, text=text, parse_mode=parse_mode, buttons=buttons or []
            )
        )
        self.artifacts.record(session, message_id)
        if buttons:
            session.interactive_message_id = message_id
        return message_id

    async def notify(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        """Send a message that outlives the session (results, errors)."""
        try:
            await self.adapter.send_message(
                OutgoingMessage(chat_id=chat_id, text=text, parse_mode=parse_mode)
            )
        except MessengerError as e:
            logger.error("notify_failed", chat_id=chat_id, error=str(e))

    async def strip_controls(self, session: Session, message_id: Optional[str] = None) -> None:
        """Remove the buttons from a message; the message may already be edited or gone."""
        target = message_id or session.interactive_message_id
        if target is None:
            return
        if target == session.interactive_message_id:
            session.interactive_message_id = None
        try:
            await self.adapter.edit_buttons(session.chat_id, target, [])
        except MessengerError as e:
            logger.warning(
                "strip_controls_failed", chat_id=session.chat_id, message_id=target, error=str(e)
            )

    def arm(self, session: Session) -> None:
        duration = (
            self.config.login_timeout
            if isinstance(session.state, AwaitingLogin)
            else self.config.button_timeout
        )
        self.timeouts.arm(session, duration, self.expire)

    async def expire(self, session: Session, handle: str) -> None:
        async with self.store.lock(session.chat_id):
            # The session may have been replaced, or re-armed by a handler that
            # held the lock while this deadline was waiting for it.
            if self.store.get(session.chat_id) is not session or session.deadline != handle:
                logger.debug("deadline_stale", chat_id=session.chat_id, job_id=handle)
                return
            session.deadline = None
            logger.info("session_expired", chat_id=session.chat_id, step=session.step)

            await self.strip_controls(session)
            try:
                await self.send(session, render.SESSION_EXPIRED)
            except MessengerError as e:
                logger.warning("expiry_notice_failed", chat_id=session.chat_id, error=str(e))
            await self.finish(session)
