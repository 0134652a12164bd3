"""Abstract messenger adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from split_bot.messenger.models import IncomingEvent, Keyboard, OutgoingMessage


class MessengerError(Exception):
    """A platform call (send, edit, delete, answer) failed."""


class MessengerAdapter(ABC):
    """Base class for chat platform adapters.

    Adapters translate platform updates into ``IncomingEvent`` objects and
    expose the handful of outbound operations the session engine needs.
    Every outbound failure must surface as ``MessengerError``.
    """

    def __init__(self, bot_id: str, config: dict):
        self.bot_id = bot_id
        self.config = config
        self._event_callback: Callable[[IncomingEvent], Awaitable[None]] | None = None

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin receiving events."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Gracefully disconnect."""
        ...

    @abstractmethod
    async def send_message(self, message: OutgoingMessage) -> str:
        """Send a message and return its platform message id."""
        ...

    @abstractmethod
    async def edit_buttons(self, chat_id: str, message_id: str, buttons: Keyboard) -> None:
        """Replace the inline buttons of a sent message; an empty keyboard strips them."""
        ...

    @abstractmethod
    async def delete_message(self, chat_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    async def answer_button(
        self, press_id: str, text: Optional[str] = None, alert: bool = False
    ) -> None:
        """Acknowledge a button press so the client stops showing it as pending."""
        ...

    def on_event(self, callback: Callable[[IncomingEvent], Awaitable[None]]) -> None:
        """Register the callback invoked for every incoming event."""
        self._event_callback = callback

    async def dispatch(self, event: IncomingEvent) -> None:
        """Feed an event from outside the platform (e.g. the OAuth callback) to the handler."""
        if self._event_callback:
            await self._event_callback(event)

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return platform identifier string."""
        ...
