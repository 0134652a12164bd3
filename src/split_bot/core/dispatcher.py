"""Single entry point for every inbound event."""

from __future__ import annotations

from typing import Awaitable, Callable

from split_bot.core import render
from split_bot.core.guard import is_owner, reject_button
from split_bot.core.lifecycle import SessionLifecycle
from split_bot.core.machine import ExpenseStateMachine
from split_bot.log import conversation_context, get_logger
from split_bot.messenger.base import MessengerError
from split_bot.messenger.models import (
    ButtonEvent,
    CommandEvent,
    IncomingEvent,
    LinkEvent,
    TextEvent,
)

logger = get_logger(__name__)


class EventDispatcher:
    """Routes commands, free text, button presses and login completions.

    Each event runs under its chat's lock, so a session is never read and
    written by two handlers at once. Deadlines take the same lock.
    """

    def __init__(self, lifecycle: SessionLifecycle, machine: ExpenseStateMachine):
        self._lc = lifecycle
        self._machine = machine
        self._commands: dict[str, Callable[[CommandEvent], Awaitable[None]]] = {
            "start": self._help,
            "help": self._help,
            "login": lambda e: self._machine.start_login(e.chat_id, e.user_id),
            "unlink": lambda e: self._machine.unlink(e.chat_id),
            "group": lambda e: self._machine.start_browse(e.chat_id, e.user_id),
            "groups": lambda e: self._machine.start_browse(e.chat_id, e.user_id),
            "setgroup": lambda e: self._machine.start_set_default(e.chat_id, e.user_id),
            "expense": lambda e: self._machine.start_expense(e.chat_id, e.user_id),
            "balance": lambda e: self._machine.show_balance(e.chat_id),
        }

    async def handle(self, event: IncomingEvent) -> None:
        chat_id = event.chat_id
        with conversation_context(chat_id):
            async with self._lc.store.lock(chat_id):
                try:
                    if isinstance(event, CommandEvent):
                        await self._on_command(event)
                    elif isinstance(event, TextEvent):
                        await self._on_text(event)
                    elif isinstance(event, ButtonEvent):
                        await self._on_button(event)
                    elif isinstance(event, LinkEvent):
                        await self._machine.complete_login(chat_id, event.access_token)
                except MessengerError as e:
                    # The chat is unreachable mid-flow; drop whatever was in progress.
                    logger.error("event_transport_error", event=type(event).__name__, error=str(e))
                    await self._lc.discard(chat_id)

    async def _on_command(self, event: CommandEvent) -> None:
        if event.command == "cancel":
            cancelled = await self._lc.discard(event.chat_id)
            logger.info("cancel_command", user_id=event.user_id, cancelled=cancelled)
            await self._lc.notify(
                event.chat_id, render.CANCELLED if cancelled else render.NOTHING_TO_CANCEL
            )
            return

        handler = self._commands.get(event.command)
        if handler is None:
            logger.debug("unknown_command", command=event.command)
            return

        logger.info("command_received", command=event.command, user_id=event.user_id)
        await self._lc.discard(event.chat_id)
        await handler(event)

    async def _help(self, event: CommandEvent) -> None:
        await self._lc.notify(event.chat_id, render.HELP_TEXT)

    async def _on_text(self, event: TextEvent) -> None:
        session = self._lc.store.get(event.chat_id)
        if session is None or not is_owner(session, event.user_id) or not session.expects_text:
            return
        logger.debug("text_received", step=session.step, user_id=event.user_id)
        await self._machine.on_text(session, event)

    async def _on_button(self, event: ButtonEvent) -> None:
        session = self._lc.store.get(event.chat_id)
        if session is None:
            await self._answer(event, render.BUTTON_EXPIRED)
            return
        if not is_owner(session, event.user_id):
            await reject_button(self._lc.adapter, session, event)
            return

        try:
            handled = await self._machine.on_button(session, event)
        finally:
            await self._answer(event)
        if not handled:
            logger.debug("button_ignored", step=session.step, data=event.data)

    async def _answer(self, event: ButtonEvent, text: str | None = None) -> None:
        try:
            await self._lc.adapter.answer_button(event.press_id, text)
        except MessengerError as e:
            logger.warning("button_answer_failed", error=str(e))
