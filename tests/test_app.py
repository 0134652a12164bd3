from unittest.mock import AsyncMock

import httpx

from conftest import CHAT, OWNER, FakeAdapter

from split_bot.app import SplitBotApp
from split_bot.config import AppConfig
from split_bot.core import render
from split_bot.messenger.models import CommandEvent


def _config(tmp_path, oauth_enabled: bool = False) -> AppConfig:
    return AppConfig(
        data_dir=str(tmp_path),
        telegram={"token": "t"},
        splitwise={"client_id": "cid", "redirect_uri": "https://bot.example/oauth/callback"},
        oauth={"enabled": oauth_enabled},
        storage={"db_path": str(tmp_path / "bot.db")},
    )


async def test_login_round_trip_through_app(tmp_path):
    adapter = FakeAdapter()
    app = SplitBotApp(_config(tmp_path), adapter=adapter)
    await app.start()
    try:
        await adapter.dispatch(CommandEvent(chat_id=CHAT, user_id=OWNER, command="login"))
        prompt_id = adapter.last_id()
        assert "state=100" in adapter.last().text
        assert app.scheduler.pending() == 1

        await app.deliver_credential(CHAT, "tok")

        assert await app.links.get(CHAT) == "tok"
        assert adapter.last().text == render.LOGIN_SUCCESS
        assert adapter.deleted == [prompt_id]
        assert app.scheduler.pending() == 0
    finally:
        await app.stop()


async def test_oauth_redirect_links_chat(tmp_path, monkeypatch):
    adapter = FakeAdapter()
    app = SplitBotApp(_config(tmp_path), adapter=adapter)
    exchange = AsyncMock(return_value="tok-from-redirect")
    monkeypatch.setattr(app.splitwise, "exchange_code", exchange)
    await app.start()
    try:
        await adapter.dispatch(CommandEvent(chat_id=CHAT, user_id=OWNER, command="login"))

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app.oauth.api), base_url="http://bot.test"
        ) as client:
            response = await client.get(
                "/oauth/callback", params={"code": "abc", "state": CHAT}
            )

        assert response.status_code == 200
        exchange.assert_awaited_once_with("abc")
        assert await app.links.get(CHAT) == "tok-from-redirect"
        assert adapter.last().text == render.LOGIN_SUCCESS
        assert app.scheduler.pending() == 0
    finally:
        await app.stop()


async def test_callback_server_follows_config(tmp_path, monkeypatch):
    for enabled in (True, False):
        app = SplitBotApp(_config(tmp_path / str(enabled), oauth_enabled=enabled), adapter=FakeAdapter())
        start = AsyncMock()
        monkeypatch.setattr(app.oauth, "start", start)
        await app.start()
        await app.stop()
        assert start.await_count == (1 if enabled else 0)
