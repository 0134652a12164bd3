"""Only the user who opened a session may drive it."""

from __future__ import annotations

from split_bot.core.session import Session
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerAdapter, MessengerError
from split_bot.messenger.models import ButtonEvent

logger = get_logger(__name__)

REJECTION_TEXT = "You can't interact with this button."


def is_owner(session: Session, user_id: str) -> bool:
    return session.owner == user_id


async def reject_button(adapter: MessengerAdapter, session: Session, event: ButtonEvent) -> None:
    """Show the foreign presser an alert; the session itself is left untouched."""
    logger.warning(
        "foreign_button_press",
        chat_id=event.chat_id,
        user_id=event.user_id,
        owner=session.owner,
        data=event.data,
    )
    try:
        await adapter.answer_button(event.press_id, REJECTION_TEXT, alert=True)
    except MessengerError as e:
        logger.warning("button_answer_failed", chat_id=event.chat_id, error=str(e))
