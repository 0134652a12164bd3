"""Transition logic for the login, group and expense flows.

Flow-opening methods (``start_*``) run after the dispatcher has torn down any
previous session. ``on_text`` and ``on_button`` receive owner-authorized input
for an existing session and either advance it, re-prompt in place, or end it.
"""

from __future__ import annotations

from typing import Optional

from split_bot.core import render
from split_bot.core.amount import parse_amount, split_evenly
from split_bot.core.lifecycle import SessionLifecycle
from split_bot.core.session import (
    AwaitingAmount,
    AwaitingDescription,
    AwaitingLogin,
    AwaitingSplitChoice,
    BrowsingGroups,
    ChoosingDefaultGroup,
    SelectingMembers,
    Session,
    ViewingGroup,
)
from split_bot.core.types import Callback
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerError
from split_bot.messenger.models import ButtonEvent, TextEvent
from split_bot.splitwise.client import SplitwiseAPIError, SplitwiseClient, SplitwiseError
from split_bot.splitwise.models import ExpenseRequest, Group, Share
from split_bot.storage.link_repo import LinkRepository

logger = get_logger(__name__)


def _parse_id(data: str, prefix: str) -> Optional[int]:
    if not data.startswith(prefix):
        return None
    try:
        return int(data[len(prefix):])
    except ValueError:
        return None


def _find_group(groups: list[Group], group_id: Optional[int]) -> Optional[Group]:
    return next((g for g in groups if g.id == group_id), None)


class ExpenseStateMachine:
    def __init__(
        self,
        lifecycle: SessionLifecycle,
        links: LinkRepository,
        splitwise: SplitwiseClient,
    ):
        self._lc = lifecycle
        self._links = links
        self._splitwise = splitwise

    # -- flow openers -----------------------------------------------------

    async def start_login(self, chat_id: str, user_id: str) -> None:
        if await self._links.get(chat_id):
            await self._lc.notify(chat_id, render.ALREADY_LINKED)
            return
        session = await self._lc.open(chat_id, user_id, AwaitingLogin())
        await self._lc.send(session, render.login_prompt(self._splitwise.authorize_url(chat_id)))
        self._lc.arm(session)

    async def complete_login(self, chat_id: str, access_token: str) -> None:
        session = self._lc.store.get(chat_id)
        login_session = session if session and isinstance(session.state, AwaitingLogin) else None

        if await self._links.get(chat_id):
            logger.warning("login_rejected_already_linked", chat_id=chat_id)
            await self._lc.notify(chat_id, render.ALREADY_LINKED)
            if login_session:
                await self._lc.finish(login_session)
            return

        await self._links.set(chat_id, access_token)
        await self._lc.notify(chat_id, render.LOGIN_SUCCESS)
        if login_session:
            await self._lc.finish(login_session)

    async def unlink(self, chat_id: str) -> None:
        removed = await self._links.remove(chat_id)
        await self._lc.notify(chat_id, render.UNLINKED if removed else render.NOTHING_LINKED)

    async def start_browse(self, chat_id: str, user_id: str) -> None:
        groups = await self._fetch_groups(chat_id)
        if groups is None:
            return
        session = await self._lc.open(chat_id, user_id, BrowsingGroups(groups=groups))
        await self._lc.send(
            session, render.CHOOSE_GROUP, render.group_keyboard(groups, Callback.GROUP)
        )
        self._lc.arm(session)

    async def start_set_default(self, chat_id: str, user_id: str) -> None:
        groups = await self._fetch_groups(chat_id)
        if groups is None:
            return
        session = await self._lc.open(chat_id, user_id, ChoosingDefaultGroup(groups=groups))
        await self._lc.send(
            session,
            render.CHOOSE_DEFAULT_GROUP,
            render.group_keyboard(groups, Callback.SET_GROUP),
        )
        self._lc.arm(session)

    async def start_expense(self, chat_id: str, user_id: str) -> None:
        link = await self._links.get_link(chat_id)
        if link is None:
            await self._lc.notify(chat_id, render.NOT_LOGGED_IN)
            return
        if link.default_group_id is None:
            await self._lc.notify(chat_id, render.NO_DEFAULT_GROUP)
            return
        session = await self._lc.open(
            chat_id, user_id, AwaitingDescription(group_id=link.default_group_id)
        )
        await self._lc.send(session, render.ASK_DESCRIPTION)
        self._lc.arm(session)

    async def show_balance(self, chat_id: str) -> None:
        link = await self._links.get_link(chat_id)
        if link is None:
            await self._lc.notify(chat_id, render.NOT_LOGGED_IN)
            return
        if link.default_group_id is None:
            await self._lc.notify(chat_id, render.NO_DEFAULT_GROUP)
            return
        try:
            group = await self._splitwise.get_group(link.access_token, link.default_group_id)
        except SplitwiseError as e:
            logger.error("balance_fetch_failed", chat_id=chat_id, error=str(e))
            await self._lc.notify(chat_id, render.FETCH_GROUP_FAILED)
            return
        await self._lc.notify(
            chat_id,
            render.format_group(group, heading="Group Members and Balances"),
            parse_mode="markdown",
        )

    async def _fetch_groups(self, chat_id: str) -> Optional[list[Group]]:
        token = await self._links.get(chat_id)
        if not token:
            await self._lc.notify(chat_id, render.NOT_LOGGED_IN)
            return None
        try:
            groups = await self._splitwise.list_groups(token)
        except SplitwiseError as e:
            logger.error("groups_fetch_failed", chat_id=chat_id, error=str(e))
            await self._lc.notify(chat_id, render.FETCH_GROUPS_FAILED)
            return None
        if not groups:
            await self._lc.notify(chat_id, render.NO_GROUPS)
            return None
        return groups

    # -- free text --------------------------------------------------------

    async def on_text(self, session: Session, event: TextEvent) -> None:
        self._lc.artifacts.record(session, event.message_id)
        state = session.state

        if isinstance(state, AwaitingDescription):
            description = event.text.strip()
            if not description:
                await self._lc.send(session, render.INVALID_DESCRIPTION)
            else:
                session.state = AwaitingAmount(group_id=state.group_id, description=description)
                await self._lc.send(session, render.ask_amount(self._lc.config.default_currency))

        elif isinstance(state, AwaitingAmount):
            parsed = parse_amount(event.text, self._lc.config.default_currency)
            if parsed is None:
                logger.info("invalid_amount", chat_id=session.chat_id, text=event.text)
                await self._lc.send(session, render.INVALID_AMOUNT)
            else:
                amount, currency = parsed
                session.state = AwaitingSplitChoice(
                    group_id=state.group_id,
                    description=state.description,
                    amount=amount,
                    currency=currency,
                )
                await self._lc.send(session, render.ASK_SPLIT, render.split_choice_keyboard())

        self._lc.arm(session)

    # -- buttons ----------------------------------------------------------

    async def on_button(self, session: Session, event: ButtonEvent) -> bool:
        """Apply a button press. Returns False when the payload means nothing in this step."""
        state = session.state
        data = event.data

        if isinstance(state, BrowsingGroups):
            group = _find_group(state.groups, _parse_id(data, Callback.GROUP))
            if group is None:
                return False
            await self._show_group(session, event, group)

        elif isinstance(state, ViewingGroup):
            if _parse_id(data, Callback.CREATE_EXPENSE) != state.group.id:
                return False
            await self._lc.strip_controls(session, event.message_id)
            session.state = AwaitingDescription(group_id=state.group.id)
            await self._lc.send(session, render.ASK_DESCRIPTION)
            self._lc.arm(session)

        elif isinstance(state, ChoosingDefaultGroup):
            group = _find_group(state.groups, _parse_id(data, Callback.SET_GROUP))
            if group is None:
                return False
            await self._set_default_group(session, group)

        elif isinstance(state, AwaitingSplitChoice):
            if data == Callback.SPLIT_EQUAL:
                await self._lc.strip_controls(session, event.message_id)
                await self._submit_expense(
                    session,
                    ExpenseRequest(
                        group_id=state.group_id,
                        description=state.description,
                        amount=state.amount,
                        currency_code=state.currency,
                    ),
                )
            elif data == Callback.SPLIT_CUSTOM:
                await self._lc.strip_controls(session, event.message_id)
                await self._choose_members(session, state)
            else:
                return False

        elif isinstance(state, SelectingMembers):
            if data == Callback.SUBMIT_MEMBERS:
                await self._submit_members(session, state)
            else:
                index = _parse_id(data, Callback.TOGGLE_MEMBER)
                if index is None or not 0 <= index < len(state.members):
                    return False
                state.toggle(state.members[index].id)
                try:
                    await self._lc.adapter.edit_buttons(
                        session.chat_id,
                        event.message_id,
                        render.member_keyboard(state.members, state.selected),
                    )
                except MessengerError as e:
                    logger.warning("member_keyboard_edit_failed", chat_id=session.chat_id, error=str(e))
                self._lc.arm(session)

        else:
            return False
        return True

    async def _show_group(self, session: Session, event: ButtonEvent, group: Group) -> None:
        token = await self._links.get(session.chat_id)
        if not token:
            await self._lc.notify(session.chat_id, render.NOT_LOGGED_IN)
            await self._lc.finish(session)
            return
        try:
            detail = await self._splitwise.get_group(token, group.id)
        except SplitwiseError as e:
            logger.error("group_fetch_failed", chat_id=session.chat_id, group_id=group.id, error=str(e))
            await self._lc.notify(session.chat_id, render.FETCH_GROUP_FAILED)
            await self._lc.finish(session)
            return

        await self._lc.strip_controls(session, event.message_id)
        session.state = ViewingGroup(group=detail)
        await self._lc.send(
            session,
            render.format_group(detail),
            render.create_expense_keyboard(detail),
            parse_mode="markdown",
        )
        self._lc.arm(session)

    async def _set_default_group(self, session: Session, group: Group) -> None:
        stored = await self._links.set_default_group(session.chat_id, group.id)
        if stored:
            logger.info("default_group_set", chat_id=session.chat_id, group_id=group.id)
            await self._lc.notify(session.chat_id, render.default_group_set(group))
        else:
            await self._lc.notify(session.chat_id, render.NOT_LOGGED_IN)
        await self._lc.finish(session)

    async def _choose_members(self, session: Session, state: AwaitingSplitChoice) -> None:
        token = await self._links.get(session.chat_id)
        if not token:
            await self._lc.notify(session.chat_id, render.NOT_LOGGED_IN)
            await self._lc.finish(session)
            return
        try:
            group = await self._splitwise.get_group(token, state.group_id)
        except SplitwiseError as e:
            logger.error("members_fetch_failed", chat_id=session.chat_id, error=str(e))
            await self._lc.notify(session.chat_id, render.FETCH_MEMBERS_FAILED)
            await self._lc.finish(session)
            return
        if not group.members:
            await self._lc.notify(session.chat_id, render.NO_MEMBERS_IN_GROUP)
            await self._lc.finish(session)
            return

        selecting = SelectingMembers(
            group_id=state.group_id,
            description=state.description,
            amount=state.amount,
            currency=state.currency,
            members=group.members,
        )
        session.state = selecting
        await self._lc.send(
            session,
            render.ASK_MEMBERS,
            render.member_keyboard(selecting.members, selecting.selected),
        )
        self._lc.arm(session)

    async def _submit_members(self, session: Session, state: SelectingMembers) -> None:
        chosen = state.selected_members()
        if not chosen:
            await self._lc.send(session, render.NO_MEMBERS_SELECTED)
            self._lc.arm(session)
            return

        await self._lc.strip_controls(session)
        amounts = split_evenly(state.amount, len(chosen))
        shares = [
            Share(user_id=m.id, paid_share=amount, owed_share=amount)
            for m, amount in zip(chosen, amounts)
        ]
        await self._submit_expense(
            session,
            ExpenseRequest(
                group_id=state.group_id,
                description=state.description,
                amount=state.amount,
                currency_code=state.currency,
                shares=shares,
            ),
        )

    async def _submit_expense(self, session: Session, request: ExpenseRequest) -> None:
        """Terminal step of the wizard: one remote call, one result message, then cleanup."""
        self._lc.timeouts.cancel(session)
        token = await self._links.get(session.chat_id)
        if not token:
            result = render.NOT_LOGGED_IN
        else:
            try:
                await self._splitwise.create_expense(token, request)
            except SplitwiseAPIError as e:
                logger.error("expense_rejected", chat_id=session.chat_id, errors=e.errors)
                result = render.expense_rejected(e.message)
            except SplitwiseError as e:
                logger.error("expense_failed", chat_id=session.chat_id, error=str(e))
                result = render.EXPENSE_FAILED
            else:
                logger.info(
                    "expense_created",
                    chat_id=session.chat_id,
                    group_id=request.group_id,
                    amount=str(request.amount),
                    currency=request.currency_code,
                )
                result = render.expense_created(f"{request.amount:.2f}", request.currency_code)

        await self._lc.notify(session.chat_id, result)
        await self._lc.finish(session)
