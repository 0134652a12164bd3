import json
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from split_bot.config import SplitwiseConfig
from split_bot.splitwise.client import (
    SplitwiseAPIError,
    SplitwiseClient,
    SplitwiseTransportError,
    build_expense_payload,
)
from split_bot.splitwise.models import ExpenseRequest, Share

CONFIG = SplitwiseConfig(
    client_id="cid",
    redirect_uri="https://bot.example/callback",
    base_url="https://sw.example/api/v3.0",
)


def _client(handler) -> SplitwiseClient:
    return SplitwiseClient(CONFIG, transport=httpx.MockTransport(handler))


def test_equal_split_payload():
    payload = build_expense_payload(
        ExpenseRequest(group_id=7, description="Dinner", amount=Decimal("30"), currency_code="SGD"),
        category_id=15,
    )
    assert payload == {
        "cost": "30.00",
        "description": "Dinner",
        "currency_code": "SGD",
        "category_id": 15,
        "group_id": 7,
        "split_equally": True,
    }


def test_custom_split_payload():
    shares = [
        Share(user_id=10, paid_share=Decimal("3.34"), owed_share=Decimal("3.34")),
        Share(user_id=12, paid_share=Decimal("3.33"), owed_share=Decimal("3.33")),
    ]
    payload = build_expense_payload(
        ExpenseRequest(
            group_id=7,
            description="Taxi",
            amount=Decimal("6.67"),
            currency_code="USD",
            shares=shares,
        ),
        category_id=15,
    )
    assert "split_equally" not in payload
    assert payload["users__0__user_id"] == 10
    assert payload["users__0__owed_share"] == "3.34"
    assert payload["users__1__user_id"] == 12
    assert payload["users__1__paid_share"] == "3.33"


def test_authorize_url_carries_chat_id():
    url = urlparse(SplitwiseClient(CONFIG).authorize_url("-100"))
    query = parse_qs(url.query)
    assert query["state"] == ["-100"]
    assert query["client_id"] == ["cid"]
    assert query["response_type"] == ["code"]


async def test_list_groups_sends_bearer_token():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "groups": [
                    {"id": 7, "name": "Trip", "members": [{"id": 10, "first_name": "Ann"}]},
                    {"id": 8, "name": "Flat"},
                ]
            },
        )

    async with _client(handler) as client:
        groups = await client.list_groups("tok")

    assert [g.name for g in groups] == ["Trip", "Flat"]
    assert groups[0].members[0].display_name == "Ann"
    assert seen[0].headers["Authorization"] == "Bearer tok"
    assert seen[0].url.path == "/api/v3.0/get_groups"


async def test_create_expense_posts_payload():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"expenses": [{"id": 1, "cost": "12.50"}], "errors": {}})

    async with _client(handler) as client:
        expense = await client.create_expense(
            "tok",
            ExpenseRequest(group_id=7, description="Lunch", amount=Decimal("12.5"), currency_code="EUR"),
        )

    assert expense.id == 1
    assert bodies[0]["cost"] == "12.50"
    assert bodies[0]["split_equally"] is True


async def test_create_expense_rejection_carries_messages():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"expenses": [], "errors": {"base": ["Split validation failed"]}}
        )

    async with _client(handler) as client:
        with pytest.raises(SplitwiseAPIError) as exc:
            await client.create_expense(
                "tok",
                ExpenseRequest(group_id=7, description="x", amount=Decimal("1"), currency_code="SGD"),
            )

    assert exc.value.errors == ["Split validation failed"]
    assert exc.value.message == "Split validation failed"


async def test_unauthorized_error_string():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid API Request: you are not logged in"})

    async with _client(handler) as client:
        with pytest.raises(SplitwiseAPIError) as exc:
            await client.get_group("tok", 7)

    assert exc.value.status_code == 401


async def test_server_error_without_body_is_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    async with _client(handler) as client:
        with pytest.raises(SplitwiseTransportError):
            await client.list_groups("tok")


async def test_network_error_is_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(SplitwiseTransportError):
            await client.get_group("tok", 7)


async def test_exchange_code_returns_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/oauth/token"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        return httpx.Response(200, json={"access_token": "tok-9", "token_type": "bearer"})

    async with _client(handler) as client:
        assert await client.exchange_code("abc") == "tok-9"


async def test_exchange_code_rejection():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_grant"})

    async with _client(handler) as client:
        with pytest.raises(SplitwiseAPIError) as exc:
            await client.exchange_code("stale")

    assert exc.value.errors == ["invalid_grant"]


async def test_exchange_code_without_token_is_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token_type": "bearer"})

    async with _client(handler) as client:
        with pytest.raises(SplitwiseTransportError):
            await client.exchange_code("abc")
