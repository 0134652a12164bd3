"""Shared fixtures: in-memory chat transport, Splitwise fake, manual clock."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import pytest

from split_bot.config import SessionConfig
from split_bot.core.artifacts import ArtifactTracker
from split_bot.core.dispatcher import EventDispatcher
from split_bot.core.lifecycle import SessionLifecycle
from split_bot.core.machine import ExpenseStateMachine
from split_bot.core.session import SessionStore
from split_bot.core.timeouts import DeadlineScheduler, TimeoutManager
from split_bot.messenger.base import MessengerAdapter, MessengerError
from split_bot.messenger.models import (
    ButtonEvent,
    CommandEvent,
    Keyboard,
    LinkEvent,
    OutgoingMessage,
    TextEvent,
)
from split_bot.splitwise.client import SplitwiseError
from split_bot.splitwise.models import Expense, ExpenseRequest, Group, Member
from split_bot.storage.database import Database
from split_bot.storage.link_repo import LinkRepository

CHAT = "100"
OWNER = "1"
STRANGER = "2"


class FakeAdapter(MessengerAdapter):
    """Records every outbound call; message ids are sequential strings."""

    def __init__(self) -> None:
        super().__init__("fake", {})
        self.sent: dict[str, OutgoingMessage] = {}
        self.deleted: list[str] = []
        self.edits: list[tuple[str, Keyboard]] = []
        self.answers: list[tuple[str, Optional[str], bool]] = []
        self.undeletable: set[str] = set()
        self.uneditable: set[str] = set()
        self.fail_sends = False
        # set `hold` to park sends until it is set; `holding` fires once one is parked
        self.hold: Optional[asyncio.Event] = None
        self.holding = asyncio.Event()
        self._next_id = 1000

    @property
    def platform_name(self) -> str:
        return "fake"

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def send_message(self, message: OutgoingMessage) -> str:
        if self.hold is not None:
            self.holding.set()
            await self.hold.wait()
        if self.fail_sends:
            raise MessengerError("chat not found")
        self._next_id += 1
        message_id = str(self._next_id)
        self.sent[message_id] = message
        return message_id

    async def edit_buttons(self, chat_id: str, message_id: str, buttons: Keyboard) -> None:
        if message_id in self.uneditable:
            raise MessengerError("message can't be edited")
        self.edits.append((message_id, buttons))

    async def delete_message(self, chat_id: str, message_id: str) -> None:
        if message_id in self.undeletable:
            raise MessengerError("message to delete not found")
        self.deleted.append(message_id)

    async def answer_button(self, press_id: str, text: Optional[str] = None, alert: bool = False) -> None:
        self.answers.append((press_id, text, alert))

    # helpers
    def texts(self) -> list[str]:
        return [m.text for m in self.sent.values()]

    def last_id(self) -> str:
        return next(reversed(self.sent))

    def last(self) -> OutgoingMessage:
        return self.sent[self.last_id()]

    def id_of(self, text: str) -> str:
        return next(mid for mid, m in self.sent.items() if m.text == text)


class ManualScheduler(DeadlineScheduler):
    """Deadlines fire only when the test advances virtual time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.jobs: dict[str, tuple[float, Callable[[], Awaitable[None]]]] = {}
        self._counter = 0

    def schedule(self, delay: float, callback: Callable[[], Awaitable[None]]) -> str:
        self._counter += 1
        handle = f"job-{self._counter}"
        self.jobs[handle] = (self.now + delay, callback)
        return handle

    def cancel(self, handle: str) -> None:
        self.jobs.pop(handle, None)

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            ((when, handle) for handle, (when, _) in self.jobs.items() if when <= self.now)
        )
        for _, handle in due:
            job = self.jobs.pop(handle, None)
            if job:
                await job[1]()


@dataclass
class FakeSplitwise:
    groups: list[Group] = field(default_factory=list)
    created: list[ExpenseRequest] = field(default_factory=list)
    list_error: Optional[SplitwiseError] = None
    group_error: Optional[SplitwiseError] = None
    expense_error: Optional[SplitwiseError] = None

    def authorize_url(self, chat_id: str) -> str:
        return f"https://auth.example/authorize?state={chat_id}"

    async def list_groups(self, access_token: str) -> list[Group]:
        if self.list_error:
            raise self.list_error
        return self.groups

    async def get_group(self, access_token: str, group_id: int) -> Group:
        if self.group_error:
            raise self.group_error
        return next(g for g in self.groups if g.id == group_id)

    async def create_expense(self, access_token: str, request: ExpenseRequest) -> Expense:
        if self.expense_error:
            raise self.expense_error
        self.created.append(request)
        return Expense(id=len(self.created), cost=f"{request.amount:.2f}")


def make_group(group_id: int = 7, name: str = "Trip", n_members: int = 3) -> Group:
    names = ["Ann", "Ben", "Cat", "Dan", "Eve"]
    return Group(
        id=group_id,
        name=name,
        members=[
            Member(id=10 + i, first_name=names[i], last_name="Lee") for i in range(n_members)
        ],
    )


@dataclass
class Bot:
    """The assembled engine plus its fakes."""

    dispatcher: EventDispatcher
    store: SessionStore
    adapter: FakeAdapter
    scheduler: ManualScheduler
    splitwise: FakeSplitwise
    links: LinkRepository
    config: SessionConfig

    async def command(self, command: str, user: str = OWNER, chat: str = CHAT) -> None:
        await self.dispatcher.handle(CommandEvent(chat_id=chat, user_id=user, command=command))

    async def text(self, text: str, user: str = OWNER, chat: str = CHAT, message_id: str = "") -> None:
        await self.dispatcher.handle(
            TextEvent(chat_id=chat, user_id=user, message_id=message_id or f"in-{text}", text=text)
        )

    async def press(
        self,
        data: str,
        user: str = OWNER,
        chat: str = CHAT,
        message_id: Optional[str] = None,
        press_id: str = "press",
    ) -> None:
        await self.dispatcher.handle(
            ButtonEvent(
                chat_id=chat,
                user_id=user,
                press_id=press_id,
                message_id=message_id or self.adapter.last_id(),
                data=data,
            )
        )

    async def link(self, token: str, chat: str = CHAT) -> None:
        await self.dispatcher.handle(LinkEvent(chat_id=chat, access_token=token))

    def session(self, chat: str = CHAT) -> Any:
        return self.store.get(chat)


@pytest.fixture
async def links(tmp_path: Path):
    db = Database(str(tmp_path / "links.db"))
    await db.initialize()
    yield LinkRepository(db)
    await db.close()


@pytest.fixture
def group() -> Group:
    return make_group()


@pytest.fixture
async def bot(links: LinkRepository, group: Group) -> Bot:
    adapter = FakeAdapter()
    scheduler = ManualScheduler()
    splitwise = FakeSplitwise(groups=[group, make_group(8, "Flat", 2)])
    config = SessionConfig(button_timeout=60, login_timeout=300, default_currency="SGD")
    store = SessionStore()
    lifecycle = SessionLifecycle(
        adapter=adapter,
        store=store,
        timeouts=TimeoutManager(scheduler),
        artifacts=ArtifactTracker(adapter),
        config=config,
    )
    machine = ExpenseStateMachine(lifecycle, links, splitwise)  # type: ignore[arg-type]
    return Bot(
        dispatcher=EventDispatcher(lifecycle, machine),
        store=store,
        adapter=adapter,
        scheduler=scheduler,
        splitwise=splitwise,
        links=links,
        config=config,
    )


@pytest.fixture
async def linked_bot(bot: Bot, group: Group) -> Bot:
    """A chat with a linked account and default group set."""
    await bot.links.set(CHAT, "token-abc")
    await bot.links.set_default_group(CHAT, group.id)
    return bot
