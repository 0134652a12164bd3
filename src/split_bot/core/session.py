"""Session records, per-step state variants, and the per-chat session store."""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, Optional, Union

from split_bot.core.types import Step
from split_bot.log import get_logger
from split_bot.splitwise.models import Group, Member

logger = get_logger(__name__)


@dataclass
class AwaitingLogin:
    step: ClassVar[Step] = Step.AWAITING_LOGIN


@dataclass
class BrowsingGroups:
    step: ClassVar[Step] = Step.BROWSING_GROUPS
    groups: list[Group]


@dataclass
class ViewingGroup:
    step: ClassVar[Step] = Step.VIEWING_GROUP
    group: Group


@dataclass
class ChoosingDefaultGroup:
    step: ClassVar[Step] = Step.CHOOSING_DEFAULT_GROUP
    groups: list[Group]


@dataclass
class AwaitingDescription:
    step: ClassVar[Step] = Step.AWAITING_DESCRIPTION
    group_id: int


@dataclass
class AwaitingAmount:
    step: ClassVar[Step] = Step.AWAITING_AMOUNT
    group_id: int
    description: str


@dataclass
class AwaitingSplitChoice:
    step: ClassVar[Step] = Step.AWAITING_SPLIT_CHOICE
    group_id: int
    description: str
    amount: Decimal
    currency: str


@dataclass
class SelectingMembers:
    step: ClassVar[Step] = Step.SELECTING_MEMBERS
    group_id: int
    description: str
    amount: Decimal
    currency: str
    members: list[Member]
    selected: set[int] = field(default_factory=set)

    def toggle(self, member_id: int) -> None:
        if member_id in self.selected:
            self.selected.remove(member_id)
        else:
            self.selected.add(member_id)

    def selected_members(self) -> list[Member]:
        """Selected members in roster order."""
        return [m for m in self.members if m.id in self.selected]


State = Union[
    AwaitingLogin,
    BrowsingGroups,
    ViewingGroup,
    ChoosingDefaultGroup,
    AwaitingDescription,
    AwaitingAmount,
    AwaitingSplitChoice,
    SelectingMembers,
]

TEXT_STATES = (AwaitingDescription, AwaitingAmount)


@dataclass(eq=False)
class Session:
    """In-progress interaction for one chat. Compared by identity."""

    chat_id: str
    owner: str
    state: State
    artifacts: list[str] = field(default_factory=list)
    deadline: Optional[str] = None  # scheduler handle of the armed timeout
    interactive_message_id: Optional[str] = None  # latest message showing buttons

    @property
    def step(self) -> Step:
        return self.state.step

    @property
    def expects_text(self) -> bool:
        return isinstance(self.state, TEXT_STATES)


class SessionStore:
    """At most one session per chat, plus a lock per chat for read-modify-write sections.

    Locks are weakly held: a chat's lock lives only while some handler holds or
    awaits it, so idle chats leave nothing behind.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, chat_id: str) -> Session | None:
        return self._sessions.get(chat_id)

    def put(self, chat_id: str, session: Session) -> None:
        self._sessions[chat_id] = session
        logger.debug("session_stored", chat_id=chat_id, step=session.step, owner=session.owner)

    def remove(self, chat_id: str) -> Session | None:
        session = self._sessions.pop(chat_id, None)
        if session:
            logger.debug("session_removed", chat_id=chat_id, step=session.step)
        return session

    def lock(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = self._locks[chat_id] = asyncio.Lock()
        return lock

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
