from __future__ import annotations

from typing import Any

import httpx
from loguru import logger


class SupabaseError(RuntimeError):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Supabase request failed: HTTP {status_code} -- {message}")
        self.status_code = status_code


class SupabaseClient:
    """Minimal async client for a Supabase project's REST and auth admin APIs."""

    def __init__(self, url: str, service_key: str, *, http_client: httpx.AsyncClient | None = None):
        self._client = http_client or httpx.AsyncClient(
            base_url=url.rstrip("/"),
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=30.0,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def select(
        self,
        table: str,
        columns: str = "*",
        *,
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Fetch rows. ``filters`` uses PostgREST operators, e.g. ``{"status": "eq.success"}``."""
        params: dict[str, Any] = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        resp = await self._client.get(f"/rest/v1/{table}", params=params)
        self._raise_for_status(resp, table)
        return resp.json() or []

    async def count(self, table: str, *, filters: dict[str, str] | None = None) -> int:
        params: dict[str, Any] = {"select": "*", **(filters or {})}
        resp = await self._client.head(
            f"/rest/v1/{table}",
            params=params,
            headers={"Prefer": "count=exact"},
        )
        self._raise_for_status(resp, table)
        return _parse_content_range(resp.headers.get("content-range", ""))

    async def list_auth_users(self, *, per_page: int = 1000) -> list[dict]:
        resp = await self._client.get("/auth/v1/admin/users", params={"per_page": per_page})
        self._raise_for_status(resp, "auth.users")
        body = resp.json() or {}
        return body.get("users", []) if isinstance(body, dict) else body

    def _raise_for_status(self, resp: httpx.Response, resource: str) -> None:
        if 200 <= resp.status_code < 300:
            return
        logger.error(f"Supabase {resource} request failed: HTTP {resp.status_code}")
        raise SupabaseError(resp.status_code, resp.text)


def _parse_content_range(value: str) -> int:
    # "0-24/573" or "*/573"
    _, _, total = value.partition("/")
    try:
        return int(total)
    except ValueError:
        return 0
