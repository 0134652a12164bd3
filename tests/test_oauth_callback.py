"""The OAuth redirect endpoint feeding login completions into the engine."""

import contextlib
from urllib.parse import parse_qs

import httpx

from conftest import CHAT

from split_bot.config import SplitwiseConfig
from split_bot.core import render
from split_bot.core.types import Step
from split_bot.messenger.models import LinkEvent
from split_bot.services.oauth_callback import (
    LOGIN_PAGE_FAILED,
    LOGIN_PAGE_LINKED,
    LOGIN_PAGE_MISSING,
    LOGIN_PAGE_OK,
    create_callback_app,
)
from split_bot.splitwise.client import SplitwiseClient

CONFIG = SplitwiseConfig(
    client_id="cid",
    client_secret="secret",
    redirect_uri="https://bot.example/oauth/callback",
)


@contextlib.asynccontextmanager
async def _callback_client(bot, token_endpoint):
    splitwise = SplitwiseClient(CONFIG, transport=httpx.MockTransport(token_endpoint))

    async def deliver(chat_id, access_token):
        await bot.dispatcher.handle(LinkEvent(chat_id=chat_id, access_token=access_token))

    api = create_callback_app("/oauth/callback", splitwise, bot.links, deliver)
    async with splitwise, httpx.AsyncClient(
        transport=httpx.ASGITransport(app=api), base_url="http://bot.test"
    ) as client:
        yield client


def _granting(requests):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"access_token": "tok-1", "token_type": "bearer"})

    return handler


async def test_redirect_completes_pending_login(bot):
    await bot.command("login")
    prompt_id = bot.adapter.last_id()
    requests = []

    async with _callback_client(bot, _granting(requests)) as client:
        response = await client.get("/oauth/callback", params={"code": "abc", "state": CHAT})

    assert response.status_code == 200
    assert response.text == LOGIN_PAGE_OK

    [exchange] = requests
    assert str(exchange.url) == CONFIG.token_url
    form = parse_qs(exchange.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["abc"]
    assert form["client_secret"] == ["secret"]
    assert form["redirect_uri"] == [CONFIG.redirect_uri]

    assert await bot.links.get(CHAT) == "tok-1"
    assert bot.adapter.last().text == render.LOGIN_SUCCESS
    assert bot.adapter.deleted == [prompt_id]
    assert bot.session() is None
    assert bot.scheduler.jobs == {}


async def test_already_linked_chat_skips_exchange(linked_bot):
    requests = []
    async with _callback_client(linked_bot, _granting(requests)) as client:
        response = await client.get("/oauth/callback", params={"code": "abc", "state": CHAT})

    assert response.status_code == 400
    assert response.text == LOGIN_PAGE_LINKED
    assert requests == []
    assert await linked_bot.links.get(CHAT) == "token-abc"


async def test_missing_state_is_rejected(bot):
    requests = []
    async with _callback_client(bot, _granting(requests)) as client:
        response = await client.get("/oauth/callback", params={"code": "abc"})

    assert response.status_code == 400
    assert response.text == LOGIN_PAGE_MISSING
    assert requests == []


async def test_rejected_code_leaves_login_pending(bot):
    await bot.command("login")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_grant"})

    async with _callback_client(bot, handler) as client:
        response = await client.get("/oauth/callback", params={"code": "stale", "state": CHAT})

    assert response.status_code == 500
    assert response.text == LOGIN_PAGE_FAILED
    assert await bot.links.get(CHAT) is None
    assert bot.session().step == Step.AWAITING_LOGIN
