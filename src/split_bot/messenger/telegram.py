"""Telegram messenger adapter using python-telegram-bot v21+."""

from __future__ import annotations

from typing import Any, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    MessageHandler as TGMessageHandler,
    filters,
)

from split_bot.core.types import Platform
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerAdapter, MessengerError
from split_bot.messenger.models import (
    ButtonEvent,
    CommandEvent,
    IncomingEvent,
    Keyboard,
    OutgoingMessage,
    TextEvent,
)

logger = get_logger(__name__)


def _to_markup(buttons: Keyboard) -> InlineKeyboardMarkup | None:
    if not buttons:
        return None
    return InlineKeyboardMarkup(
        [[InlineKeyboardButton(b.text, callback_data=b.data) for b in row] for row in buttons]
    )


def parse_command(text: str) -> str:
    """Reduce "/Expense@my_bot lunch" to "expense"."""
    head = text.strip().partition(" ")[0]
    return head.lstrip("/").split("@", 1)[0].lower()


class TelegramAdapter(MessengerAdapter):
    """Telegram bot adapter using python-telegram-bot."""

    def __init__(self, bot_id: str, config: dict):
        super().__init__(bot_id, config)
        self._app: Application | None = None  # type: ignore[type-arg]

    @property
    def platform_name(self) -> str:
        return Platform.TELEGRAM

    async def start(self) -> None:
        token = self.config.get("token", "")
        if not token:
            raise ValueError(f"Telegram bot token not configured for bot '{self.bot_id}'")

        self._app = Application.builder().token(token).build()

        self._app.add_handler(TGMessageHandler(filters.COMMAND, self._on_command))
        self._app.add_handler(
            TGMessageHandler(filters.TEXT & ~filters.COMMAND, self._on_text)
        )
        self._app.add_handler(CallbackQueryHandler(self._on_callback_query))

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)  # type: ignore[union-attr]
        logger.info("telegram_adapter_started", bot_id=self.bot_id)

    async def stop(self) -> None:
        if self._app:
            await self._app.updater.stop()  # type: ignore[union-attr]
            await self._app.stop()
            await self._app.shutdown()
            logger.info("telegram_adapter_stopped", bot_id=self.bot_id)

    def _bot(self) -> Any:
        if not self._app or not self._app.bot:
            raise MessengerError("Telegram adapter is not started")
        return self._app.bot

    async def send_message(self, message: OutgoingMessage) -> str:
        parse_mode = None
        if message.parse_mode == "markdown":
            parse_mode = "Markdown"
        elif message.parse_mode == "html":
            parse_mode = "HTML"

        try:
            sent = await self._bot().send_message(
                chat_id=int(message.chat_id),
                text=message.text,
                parse_mode=parse_mode,
                reply_markup=_to_markup(message.buttons),
            )
        except TelegramError as e:
            raise MessengerError(f"send_message failed: {e}") from e
        return str(sent.message_id)

    async def edit_buttons(self, chat_id: str, message_id: str, buttons: Keyboard) -> None:
        try:
            await self._bot().edit_message_reply_markup(
                chat_id=int(chat_id),
                message_id=int(message_id),
                reply_markup=_to_markup(buttons),
            )
        except TelegramError as e:
            raise MessengerError(f"edit_message_reply_markup failed: {e}") from e

    async def delete_message(self, chat_id: str, message_id: str) -> None:
        try:
            await self._bot().delete_message(chat_id=int(chat_id), message_id=int(message_id))
        except TelegramError as e:
            raise MessengerError(f"delete_message failed: {e}") from e

    async def answer_button(
        self, press_id: str, text: Optional[str] = None, alert: bool = False
    ) -> None:
        try:
            await self._bot().answer_callback_query(
                callback_query_id=press_id, text=text, show_alert=alert
            )
        except TelegramError as e:
            raise MessengerError(f"answer_callback_query failed: {e}") from e

    async def _on_command(self, update: Update, context: Any) -> None:
        msg = update.message
        if not msg or not msg.text or not msg.from_user:
            return
        command = parse_command(msg.text)
        await self._deliver(
            CommandEvent(
                chat_id=str(msg.chat_id),
                user_id=str(msg.from_user.id),
                command=command,
                message_id=str(msg.message_id),
            )
        )

    async def _on_text(self, update: Update, context: Any) -> None:
        msg = update.message
        if not msg or msg.text is None or not msg.from_user:
            return
        await self._deliver(
            TextEvent(
                chat_id=str(msg.chat_id),
                user_id=str(msg.from_user.id),
                message_id=str(msg.message_id),
                text=msg.text,
            )
        )

    async def _on_callback_query(self, update: Update, context: Any) -> None:
        query = update.callback_query
        if not query:
            return
        if not query.message:
            # Message too old to be accessible; just clear the spinner.
            await query.answer()
            return
        await self._deliver(
            ButtonEvent(
                chat_id=str(query.message.chat.id),
                user_id=str(query.from_user.id),
                press_id=query.id,
                message_id=str(query.message.message_id),
                data=query.data or "",
            )
        )

    async def _deliver(self, event: IncomingEvent) -> None:
        if not self._event_callback:
            return
        try:
            await self._event_callback(event)
        except Exception as e:
            logger.error(
                "telegram_handler_error",
                error=str(e),
                chat_id=event.chat_id,
                event=type(event).__name__,
            )
