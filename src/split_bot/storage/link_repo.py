"""Per-chat Splitwise account links: access token plus optional default group."""

from __future__ import annotations

from typing import Optional

from split_bot.log import get_logger
from split_bot.storage.database import Database
from split_bot.storage.models import AccountLink

logger = get_logger(__name__)


class LinkRepository:
    """CRUD over the ``account_links`` table, keyed by chat id."""

    def __init__(self, db: Database):
        self._db = db

    async def get_link(self, chat_id: str) -> Optional[AccountLink]:
        cursor = await self._db.conn.execute(
            "SELECT chat_id, access_token, default_group_id FROM account_links WHERE chat_id = ?",
            (chat_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return AccountLink(
            chat_id=row["chat_id"],
            access_token=row["access_token"],
            default_group_id=row["default_group_id"],
        )

    async def get(self, chat_id: str) -> Optional[str]:
        """Return the access token linked to a chat, if any."""
        link = await self.get_link(chat_id)
        return link.access_token if link else None

    async def set(self, chat_id: str, access_token: str) -> None:
        """Create or replace the token for a chat, keeping its default group."""
        await self._db.conn.execute(
            """INSERT INTO account_links (chat_id, access_token)
               VALUES (?, ?)
               ON CONFLICT(chat_id)
               DO UPDATE SET access_token = excluded.access_token,
                             updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (chat_id, access_token),
        )
        await self._db.conn.commit()
        logger.info("account_linked", chat_id=chat_id)

    async def remove(self, chat_id: str) -> bool:
        """Delete the link. Returns True if one existed."""
        cursor = await self._db.conn.execute(
            "DELETE FROM account_links WHERE chat_id = ?", (chat_id,)
        )
        await self._db.conn.commit()
        removed = cursor.rowcount > 0
        if removed:
            logger.info("account_unlinked", chat_id=chat_id)
        return removed

    async def get_default_group(self, chat_id: str) -> Optional[int]:
        link = await self.get_link(chat_id)
        return link.default_group_id if link else None

    async def set_default_group(self, chat_id: str, group_id: int) -> bool:
        """Store the default group. Returns False when the chat has no linked account."""
        cursor = await self._db.conn.execute(
            """UPDATE account_links
               SET default_group_id = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')
               WHERE chat_id = ?""",
            (group_id, chat_id),
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0
