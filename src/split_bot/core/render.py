"""User-facing texts and inline keyboards."""

from __future__ import annotations

from split_bot.core.types import Callback
from split_bot.messenger.models import Button, Keyboard
from split_bot.splitwise.models import Group, Member

HELP_TEXT = (
    "Split expenses with your Splitwise group from this chat.\n\n"
    "/login - link a Splitwise account to this chat\n"
    "/unlink - remove the linked account\n"
    "/group - browse your groups\n"
    "/setgroup - choose the default group\n"
    "/expense - add an expense to the default group\n"
    "/balance - show balances in the default group\n"
    "/cancel - abandon the current step"
)

NOT_LOGGED_IN = "You are not logged in. Please use /login first."
NO_DEFAULT_GROUP = "No default group is set. Please use /setgroup first."
NO_GROUPS = "You are not part of any groups."
ALREADY_LINKED = (
    "An account is already linked to this chat. Please use /unlink to remove the "
    "current account before logging in with a new one."
)
LOGIN_SUCCESS = "You have successfully logged in to Splitwise!"
UNLINKED = (
    "The account has been unlinked successfully. You can now log in with a new "
    "account using /login."
)
NOTHING_LINKED = "No account is currently linked to this chat."
SESSION_EXPIRED = "The session has expired. Please try again if needed."
BUTTON_EXPIRED = "This button is no longer active."
CANCELLED = "Cancelled."
NOTHING_TO_CANCEL = "Nothing to cancel."

FETCH_GROUPS_FAILED = "Failed to fetch groups. Please try again."
FETCH_GROUP_FAILED = "Failed to fetch group details. Please try again."
FETCH_MEMBERS_FAILED = "Failed to fetch group members. Please try again."
EXPENSE_FAILED = "Failed to create expense. Please try again."

ASK_DESCRIPTION = "Please enter a description for the expense:"
INVALID_DESCRIPTION = "Invalid description. Please enter a valid description."
INVALID_AMOUNT = (
    "Invalid amount. Please enter a valid positive number with an optional "
    "currency code (e.g., 100 USD or 100)."
)
ASK_SPLIT = "Split equally?"
ASK_MEMBERS = "Select members to split the expense with:"
NO_MEMBERS_SELECTED = "No members selected. Please select at least one member."
NO_MEMBERS_IN_GROUP = "This group has no members to split with."
CHOOSE_GROUP = "Here are your groups:"
CHOOSE_DEFAULT_GROUP = "Select a group to set as default:"


def login_prompt(url: str) -> str:
    return f"Click to log in to Splitwise: {url}"


def ask_amount(default_currency: str) -> str:
    return (
        "Please enter the amount for the expense "
        f"(e.g., 10 USD or 10, default is {default_currency}):"
    )


def default_group_set(group: Group) -> str:
    return f'Default group set to "{group.name}".'


def expense_created(amount: str, currency: str) -> str:
    return f"Expense created successfully for {amount} {currency}"


def expense_rejected(reason: str) -> str:
    return f"Failed to create expense: {reason}"


def group_keyboard(groups: list[Group], prefix: Callback) -> Keyboard:
    return [[Button(g.name, f"{prefix}{g.id}")] for g in groups]


def create_expense_keyboard(group: Group) -> Keyboard:
    return [[Button("Create expense in group", f"{Callback.CREATE_EXPENSE}{group.id}")]]


def split_choice_keyboard() -> Keyboard:
    return [[Button("Yes", Callback.SPLIT_EQUAL)], [Button("No", Callback.SPLIT_CUSTOM)]]


def member_keyboard(members: list[Member], selected: set[int]) -> Keyboard:
    rows = [
        [
            Button(
                f"{m.display_name} ✅" if m.id in selected else m.display_name,
                f"{Callback.TOGGLE_MEMBER}{idx}",
            )
        ]
        for idx, m in enumerate(members)
    ]
    rows.append([Button("Submit", Callback.SUBMIT_MEMBERS)])
    return rows


def format_group(group: Group, heading: str = "Group Members") -> str:
    lines = [f"*Group Name*: {group.name}", f"*{heading}*:"]
    for member in group.members:
        balance = member.balance[0] if member.balance else None
        amount = (balance.amount if balance else None) or "0.00"
        if balance and balance.currency_code:
            lines.append(f"- {member.display_name} (Balance: {amount} {balance.currency_code})")
        else:
            lines.append(f"- {member.display_name} (Balance: {amount})")
    return "\n".join(lines)
