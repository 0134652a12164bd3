"""Amount input parsing and per-member share computation."""

from __future__ import annotations

import re
from decimal import ROUND_DOWN, Decimal
from typing import Optional

AMOUNT_PATTERN = re.compile(r"^(\d+(?:\.\d{1,2})?)\s*([A-Za-z]{3})?$")
CENT = Decimal("0.01")


def parse_amount(text: str, default_currency: str) -> Optional[tuple[Decimal, str]]:
    """Parse "10", "10.5" or "10 USD". Returns None for anything else or a zero amount."""
    match = AMOUNT_PATTERN.match(text.strip())
    if not match:
        return None
    amount = Decimal(match.group(1)).quantize(CENT)
    if amount <= 0:
        return None
    currency = (match.group(2) or default_currency).upper()
    return amount, currency


def split_evenly(amount: Decimal, count: int) -> list[Decimal]:
    """Split into ``count`` two-decimal shares that sum exactly to ``amount``.

    Leftover cents go one each to the first shares.
    """
    if count <= 0:
        raise ValueError("count must be positive")
    total_cents = int((amount / CENT).to_integral_value())
    base = (Decimal(total_cents // count) * CENT).quantize(CENT, rounding=ROUND_DOWN)
    remainder = total_cents % count
    return [base + CENT if i < remainder else base for i in range(count)]
