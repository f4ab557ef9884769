"""
BackendClient — thin httpx wrapper around the managed backend.

Talks to two surfaces:
- the REST table API (PostgREST dialect: `?col=eq.value` filters,
  `Prefer` headers for upserts and returned rows)
- edge functions at /functions/v1/<name>

All failures surface as BackendError; nothing here retries.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from courier.core.errors import BackendError

logger = logging.getLogger(__name__)

PUSH_SUBSCRIPTIONS = "push_subscriptions"


class BackendClient:
    """
    Usage:
        backend = BackendClient(url, anon_key=key, access_token=token)
        await backend.upsert_push_subscription(user_id, sub.to_json())
        await backend.invoke_function("send-push-notification", body)
        await backend.close()
    """

    def __init__(
        self,
        url: str,
        anon_key: str = "",
        access_token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._anon_key = anon_key
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._anon_key:
                headers["apikey"] = self._anon_key
            bearer = self._access_token or self._anon_key
            if bearer:
                headers["Authorization"] = f"Bearer {bearer}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ━━━ REST tables ━━━

    async def select(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        """Rows of `table` matching every `column=value` filter."""
        params = {"select": "*", **_eq(filters)}
        resp = await self._request("GET", f"/rest/v1/{table}", params=params)
        return resp.json()

    async def select_one(self, table: str, **filters: Any) -> dict[str, Any] | None:
        rows = await self.select(table, **filters)
        return rows[0] if rows else None

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        )
        return _first(resp)

    async def upsert(
        self, table: str, row: dict[str, Any], on_conflict: str
    ) -> dict[str, Any]:
        """Insert, or overwrite the row that collides on `on_conflict`."""
        resp = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return _first(resp)

    async def update(
        self, table: str, changes: dict[str, Any], **filters: Any
    ) -> dict[str, Any]:
        resp = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_eq(filters),
            json=changes,
            headers={"Prefer": "return=representation"},
        )
        return _first(resp)

    async def delete(self, table: str, **filters: Any) -> None:
        if not filters:
            raise BackendError(f"Refusing unfiltered delete on {table}")
        await self._request("DELETE", f"/rest/v1/{table}", params=_eq(filters))

    # ━━━ Push subscriptions ━━━

    async def upsert_push_subscription(
        self, user_id: str, subscription: dict[str, Any]
    ) -> None:
        """Persist the subscription for `user_id`, replacing any earlier one."""
        await self.upsert(
            PUSH_SUBSCRIPTIONS,
            {
                "user_id": user_id,
                "subscription": json.dumps(subscription),
                "created_at": _iso_now(),
            },
            on_conflict="user_id",
        )

    async def delete_push_subscription(self, user_id: str) -> None:
        await self.delete(PUSH_SUBSCRIPTIONS, user_id=user_id)

    async def fetch_push_subscription(self, user_id: str) -> dict[str, Any] | None:
        row = await self.select_one(PUSH_SUBSCRIPTIONS, user_id=user_id)
        if row is None:
            return None
        sub = row.get("subscription")
        return json.loads(sub) if isinstance(sub, str) else sub

    # ━━━ Edge functions ━━━

    async def invoke_function(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request("POST", f"/functions/v1/{name}", json=body)
        if not resp.content:
            return {}
        return resp.json()

    # ━━━ Internals ━━━

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            resp = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise BackendError(
                f"{method} {path} failed: {e}", retryable=True
            ) from e

        if resp.status_code >= 400:
            raise BackendError(
                f"{method} {path} returned {resp.status_code}: {_error_text(resp)}",
                status_code=resp.status_code,
                retryable=resp.status_code >= 500 or resp.status_code == 429,
            )
        logger.debug(f"{method} {path} → {resp.status_code}")
        return resp


def _eq(filters: dict[str, Any]) -> dict[str, str]:
    return {column: f"eq.{value}" for column, value in filters.items()}


def _first(resp: httpx.Response) -> dict[str, Any]:
    if not resp.content:
        return {}
    data = resp.json()
    if isinstance(data, list):
        return data[0] if data else {}
    return data


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)


def _iso_now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
