"""Async Splitwise API client.

Usage:
    async with SplitwiseClient(config.splitwise) as client:
        groups = await client.list_groups(access_token)
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx

from split_bot.config import SplitwiseConfig
from split_bot.log import get_logger
from split_bot.splitwise.models import Expense, ExpenseRequest, Group

logger = get_logger(__name__)


class SplitwiseError(Exception):
    """Base exception for Splitwise client errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SplitwiseAPIError(SplitwiseError):
    """The service understood the request and rejected it.

    ``errors`` is the flattened complaint list, suitable for showing to the user.
    """

    def __init__(self, errors: list[str], status_code: int | None = None):
        super().__init__(", ".join(errors), status_code)
        self.errors = errors


class SplitwiseTransportError(SplitwiseError):
    """Network failure or a response we could not interpret."""


def _collect_errors(data: Any) -> list[str]:
    """Flatten Splitwise's ``error`` / ``errors`` shapes into a list of strings."""
    if not isinstance(data, dict):
        return []
    found: list[str] = []
    if isinstance(data.get("error"), str):
        found.append(data["error"])
    errors = data.get("errors")
    if isinstance(errors, dict):
        for value in errors.values():
            if isinstance(value, list):
                found.extend(str(v) for v in value)
            elif value:
                found.append(str(value))
    elif isinstance(errors, list):
        found.extend(str(v) for v in errors)
    return found


def build_expense_payload(request: ExpenseRequest, category_id: int) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "cost": f"{request.amount:.2f}",
        "description": request.description,
        "currency_code": request.currency_code,
        "category_id": category_id,
        "group_id": request.group_id,
    }
    if request.split_equally:
        payload["split_equally"] = True
        return payload
    for i, share in enumerate(request.shares):
        payload[f"users__{i}__user_id"] = share.user_id
        payload[f"users__{i}__paid_share"] = f"{share.paid_share:.2f}"
        payload[f"users__{i}__owed_share"] = f"{share.owed_share:.2f}"
    return payload


class SplitwiseClient:
    """Async client for the subset of the Splitwise API the bot uses."""

    def __init__(
        self,
        config: SplitwiseConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SplitwiseClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def authorize_url(self, chat_id: str) -> str:
        """OAuth authorize link; the chat id round-trips as ``state``."""
        query = urlencode(
            {
                "client_id": self._config.client_id,
                "redirect_uri": self._config.redirect_uri,
                "response_type": "code",
                "state": chat_id,
            }
        )
        return f"{self._config.authorize_url}?{query}"

    async def exchange_code(self, code: str) -> str:
        """Trade the authorization code from the OAuth redirect for an access token."""
        form = {
            "grant_type": "authorization_code",
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret or "",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
        }
        try:
            response = await self._client.post(self._config.token_url, data=form)
        except httpx.HTTPError as e:
            logger.error("splitwise_token_exchange_failed", error=str(e))
            raise SplitwiseTransportError(f"token exchange failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise SplitwiseTransportError(
                "token exchange returned non-JSON body", response.status_code
            ) from e

        errors = _collect_errors(data)
        if errors:
            logger.warning("splitwise_token_rejected", status=response.status_code, errors=errors)
            raise SplitwiseAPIError(errors, response.status_code)
        token = data.get("access_token") if isinstance(data, dict) else None
        if response.status_code >= 400 or not token:
            raise SplitwiseTransportError(
                f"token exchange returned HTTP {response.status_code} without a token",
                response.status_code,
            )
        return token

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        *,
        json: dict | None = None,
    ) -> dict:
        try:
            response = await self._client.request(
                method=method,
                url=path,
                headers={"Authorization": f"Bearer {access_token}"},
                json=json,
            )
        except httpx.HTTPError as e:
            logger.error("splitwise_request_failed", method=method, path=path, error=str(e))
            raise SplitwiseTransportError(f"{method} {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise SplitwiseTransportError(
                f"{method} {path} returned non-JSON body", response.status_code
            ) from e

        errors = _collect_errors(data)
        if errors:
            logger.warning(
                "splitwise_api_error", path=path, status=response.status_code, errors=errors
            )
            raise SplitwiseAPIError(errors, response.status_code)
        if response.status_code >= 400:
            raise SplitwiseTransportError(
                f"{method} {path} returned HTTP {response.status_code}", response.status_code
            )
        return data

    async def list_groups(self, access_token: str) -> list[Group]:
        data = await self._request("GET", "/get_groups", access_token)
        return [Group.model_validate(g) for g in data.get("groups") or []]

    async def get_group(self, access_token: str, group_id: int) -> Group:
        data = await self._request("GET", f"/get_group/{group_id}", access_token)
        if not data.get("group"):
            raise SplitwiseTransportError(f"get_group/{group_id} returned no group")
        return Group.model_validate(data["group"])

    async def create_expense(self, access_token: str, request: ExpenseRequest) -> Expense:
        payload = build_expense_payload(request, self._config.category_id)
        logger.debug("splitwise_create_expense", group_id=request.group_id, payload=payload)
        data = await self._request("POST", "/create_expense", access_token, json=payload)
        expenses = data.get("expenses") or []
        if not expenses:
            raise SplitwiseTransportError("create_expense returned no expense")
        return Expense.model_validate(expenses[0])
