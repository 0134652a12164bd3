"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    TELEGRAM = "telegram"


class Step(StrEnum):
    AWAITING_LOGIN = "awaiting_login"
    BROWSING_GROUPS = "browsing_groups"
    VIEWING_GROUP = "viewing_group"
    CHOOSING_DEFAULT_GROUP = "choosing_default_group"
    AWAITING_DESCRIPTION = "awaiting_description"
    AWAITING_AMOUNT = "awaiting_amount"
    AWAITING_SPLIT_CHOICE = "awaiting_split_choice"
    SELECTING_MEMBERS = "selecting_members"


class Callback(StrEnum):
    """Button payload prefixes and literals."""

    GROUP = "group_"
    SET_GROUP = "setgroup_"
    CREATE_EXPENSE = "createExpense_"
    SPLIT_EQUAL = "splitEquallyYes"
    SPLIT_CUSTOM = "splitEquallyNo"
    TOGGLE_MEMBER = "toggle_member_"
    SUBMIT_MEMBERS = "submit_selected_members"
