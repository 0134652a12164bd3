"""Platform-neutral message and event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union


@dataclass(frozen=True, slots=True)
class Button:
    """Inline button; ``data`` is the opaque payload echoed back on press."""

    text: str
    data: str


Keyboard = list[list[Button]]


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    chat_id: str
    text: str
    parse_mode: Optional[str] = None  # "markdown", "html", None
    buttons: Keyboard = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CommandEvent:
    chat_id: str
    user_id: str
    command: str  # lower-case, without the leading slash or @botname
    message_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class TextEvent:
    chat_id: str
    user_id: str
    message_id: str
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class ButtonEvent:
    chat_id: str
    user_id: str
    press_id: str
    message_id: str
    data: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class LinkEvent:
    """An access credential was obtained for a chat by the OAuth callback endpoint."""

    chat_id: str
    access_token: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


IncomingEvent = Union[CommandEvent, TextEvent, ButtonEvent, LinkEvent]
