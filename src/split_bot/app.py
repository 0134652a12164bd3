"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from split_bot.config import AppConfig
from split_bot.core.artifacts import ArtifactTracker
from split_bot.core.dispatcher import EventDispatcher
from split_bot.core.lifecycle import SessionLifecycle
from split_bot.core.machine import ExpenseStateMachine
from split_bot.core.session import SessionStore
from split_bot.core.timeouts import TimeoutManager
from split_bot.log import get_logger
from split_bot.messenger.base import MessengerAdapter
from split_bot.messenger.models import LinkEvent
from split_bot.services.oauth_callback import OAuthCallbackServer, create_callback_app
from split_bot.services.scheduler import SchedulerService
from split_bot.splitwise.client import SplitwiseClient
from split_bot.storage.database import Database
from split_bot.storage.link_repo import LinkRepository

logger = get_logger(__name__)


class SplitBotApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig, adapter: MessengerAdapter | None = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.links = LinkRepository(self.db)
        self.scheduler = SchedulerService(config.scheduler)
        self.splitwise = SplitwiseClient(config.splitwise)
        self.adapter = adapter or self._create_adapter()

        self.sessions = SessionStore()
        self.lifecycle = SessionLifecycle(
            adapter=self.adapter,
            store=self.sessions,
            timeouts=TimeoutManager(self.scheduler),
            artifacts=ArtifactTracker(self.adapter),
            config=config.session,
        )
        self.machine = ExpenseStateMachine(self.lifecycle, self.links, self.splitwise)
        self.dispatcher = EventDispatcher(self.lifecycle, self.machine)
        self.oauth = OAuthCallbackServer(
            config.oauth,
            create_callback_app(
                config.oauth.path, self.splitwise, self.links, self.deliver_credential
            ),
        )

    async def start(self) -> None:
        """Initialize and start all components."""
        await self.db.initialize()
        await self.scheduler.start()

        self.adapter.on_event(self.dispatcher.handle)
        await self.adapter.start()
        if self.config.oauth.enabled:
            await self.oauth.start()
        logger.info("split_bot_started", platform=self.adapter.platform_name)

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        await self.oauth.stop()
        try:
            await self.adapter.stop()
        except Exception as e:
            logger.error("bot_stop_error", error=str(e))

        await self.scheduler.stop()
        await self.splitwise.close()
        await self.db.close()
        logger.info("split_bot_stopped")

    async def deliver_credential(self, chat_id: str, access_token: str) -> None:
        """Entry point for the OAuth callback endpoint once it holds a token for a chat."""
        await self.adapter.dispatch(LinkEvent(chat_id=chat_id, access_token=access_token))

    def _create_adapter(self) -> MessengerAdapter:
        from split_bot.messenger.telegram import TelegramAdapter

        return TelegramAdapter("telegram", self.config.telegram.model_dump())
