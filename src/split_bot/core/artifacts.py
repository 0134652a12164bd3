"""Tracking and bulk retraction of the messages a session has produced."""

from __future__ import annotations

from split_bot.core.session import Session
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerAdapter, MessengerError

logger = get_logger(__name__)


class ArtifactTracker:
    def __init__(self, adapter: MessengerAdapter):
        self._adapter = adapter

    def record(self, session: Session, message_id: str) -> None:
        session.artifacts.append(message_id)

    async def flush(self, session: Session) -> int:
        """Delete every recorded message in order; returns how many deletions succeeded.

        A failed deletion (usually a message the user already removed) is logged
        and does not stop the rest.
        """
        artifacts, session.artifacts = session.artifacts, []
        deleted = 0
        for message_id in artifacts:
            try:
                await self._adapter.delete_message(session.chat_id, message_id)
                deleted += 1
            except MessengerError as e:
                logger.warning(
                    "artifact_delete_failed",
                    chat_id=session.chat_id,
                    message_id=message_id,
                    error=str(e),
                )
        logger.debug(
            "artifacts_flushed", chat_id=session.chat_id, total=len(artifacts), deleted=deleted
        )
        return deleted
