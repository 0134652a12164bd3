"""OAuth redirect endpoint: turns Splitwise's authorization code into a linked chat."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable, Iterator, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from split_bot.config import OAuthCallbackConfig
from split_bot.log import conversation_context, get_logger
from split_bot.splitwise.client import SplitwiseClient, SplitwiseError
from split_bot.storage.link_repo import LinkRepository

logger = get_logger(__name__)

LOGIN_PAGE_OK = "Login successful! You can close this window."
LOGIN_PAGE_LINKED = (
    "An account is already linked to this chat. Please unlink the current account "
    "before logging in with another one."
)
LOGIN_PAGE_MISSING = "Missing authorization code or state."
LOGIN_PAGE_FAILED = "Error during OAuth process."

DeliverCredential = Callable[[str, str], Awaitable[None]]


def create_callback_app(
    path: str,
    splitwise: SplitwiseClient,
    links: LinkRepository,
    deliver: DeliverCredential,
) -> FastAPI:
    """Build the ASGI app serving ``GET {path}?code=...&state=<chat id>``.

    A successful exchange hands the token to ``deliver``, which feeds it to the
    chat engine as a login completion for that chat.
    """
    api = FastAPI(
        title="split-bot OAuth callback",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @api.get(path, response_class=PlainTextResponse)
    async def oauth_callback(
        code: Optional[str] = None, state: Optional[str] = None
    ) -> PlainTextResponse:
        if not code or not state:
            logger.warning("oauth_callback_incomplete", has_code=bool(code), has_state=bool(state))
            return PlainTextResponse(LOGIN_PAGE_MISSING, status_code=400)

        with conversation_context(state):
            if await links.get(state):
                logger.warning("oauth_callback_already_linked")
                return PlainTextResponse(LOGIN_PAGE_LINKED, status_code=400)

            try:
                access_token = await splitwise.exchange_code(code)
            except SplitwiseError as e:
                logger.error("oauth_code_exchange_failed", error=str(e))
                return PlainTextResponse(LOGIN_PAGE_FAILED, status_code=500)

            await deliver(state, access_token)
            logger.info("oauth_callback_completed")
            return PlainTextResponse(LOGIN_PAGE_OK)

    return api


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the bot's own handlers."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class OAuthCallbackServer:
    """Runs the callback app with uvicorn as a task on the bot's event loop."""

    def __init__(self, config: OAuthCallbackConfig, api: FastAPI):
        self._config = config
        self.api = api
        self._server: _EmbeddedServer | None = None
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        self._server = _EmbeddedServer(
            uvicorn.Config(
                self.api,
                host=self._config.host,
                port=self._config.port,
                lifespan="off",
                log_config=None,
                access_log=False,
            )
        )
        self._task = asyncio.create_task(self._server.serve())
        logger.info(
            "oauth_callback_started",
            host=self._config.host,
            port=self._config.port,
            path=self._config.path,
        )

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._server = None
        self._task = None
        logger.info("oauth_callback_stopped")
