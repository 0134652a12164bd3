"""Splitwise API response models and the expense request the engine builds."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class Balance(BaseModel):
    currency_code: str = ""
    amount: str = "0.00"


class Member(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    balance: list[Balance] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or f"User {self.id}"


class Group(BaseModel):
    id: int
    name: str
    members: list[Member] = Field(default_factory=list)


class Expense(BaseModel):
    id: int
    cost: str = ""
    description: str = ""
    currency_code: str = ""


@dataclass(frozen=True, slots=True)
class Share:
    user_id: int
    paid_share: Decimal
    owed_share: Decimal


@dataclass(frozen=True)
class ExpenseRequest:
    """An expense to create. ``shares`` empty means split equally among the group."""

    group_id: int
    description: str
    amount: Decimal
    currency_code: str
    shares: list[Share] = field(default_factory=list)

    @property
    def split_equally(self) -> bool:
        return not self.shares
