"""Data models for storage layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class AccountLink:
    chat_id: str
    access_token: str
    default_group_id: Optional[int] = None
