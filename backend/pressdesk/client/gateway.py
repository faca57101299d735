# Overview: Async HTTP client for the remote data gateway, signing function and push channel.

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Iterable

import httpx


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class GatewayError(Exception):
    """
    A gateway call did not succeed.

    status is the HTTP status when the gateway answered, None for transport
    failures (unreachable, timeout).
    """

    def __init__(self, message: str, *, status: int | None = None, table: str | None = None):
        super().__init__(message)
        self.status = status
        self.table = table


class GatewayClient:
    """
    Thin async wrapper over the gateway HTTP surface.

    Every call sends the deployment key ("apikey") and, once an operator is
    signed in, their bearer token. The client keeps no state about rows.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._timeout = timeout
        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._access_token: str | None = None

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token

    def _headers(self, token: str | None = None) -> dict:
        headers = {"apikey": self.api_key}
        bearer = token or self._access_token
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body=None,
        params: dict | None = None,
        token: str | None = None,
        table: str | None = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                self._url(path),
                json=json_body,
                params=params,
                headers=self._headers(token),
            )
        except httpx.HTTPError as exc:
            raise GatewayError(f"{method} {path} failed: {exc}", table=table) from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("error") or response.text
            except (ValueError, AttributeError):
                detail = response.text
            raise GatewayError(detail or f"HTTP {response.status_code}", status=response.status_code, table=table)
        return response

    async def select(self, table: str, *, order: str | None = None) -> list[dict]:
        params = {"order": order} if order else None
        response = await self._request("GET", f"/rest/v1/{table}", params=params, table=table)
        return response.json() or []

    async def insert(self, table: str, rows: dict | list) -> list[dict]:
        response = await self._request("POST", f"/rest/v1/{table}", json_body=rows, table=table)
        return response.json()

    async def update(self, table: str, row_id: str, patch: dict) -> dict:
        response = await self._request("PATCH", f"/rest/v1/{table}/{row_id}", json_body=patch, table=table)
        return response.json()

    async def delete(self, table: str, row_id: str) -> None:
        await self._request("DELETE", f"/rest/v1/{table}/{row_id}", table=table)

    async def upsert(self, table: str, rows: list) -> list[dict]:
        response = await self._request("POST", f"/rest/v1/{table}/upsert", json_body=rows, table=table)
        return response.json()

    async def invoke(self, function: str, body: dict, *, token: str | None = None) -> dict:
        response = await self._request("POST", f"/functions/v1/{function}", json_body=body, token=token)
        return response.json()

    async def fetch_asset(self, path: str) -> str:
        """GET a static asset (no api key needed, but sending it is harmless)."""
        response = await self._request("GET", "/" + path.lstrip("/"))
        return response.text

    async def changes(self, tables: Iterable[str]) -> AsyncIterator[str]:
        """
        Yield the table name of every change event on the push channel.

        Runs until the server closes the stream or the consumer stops
        iterating. Transport failures surface as GatewayError.
        """
        params = {"tables": ",".join(tables)}
        timeout = httpx.Timeout(self._timeout, read=None)
        try:
            async with self._http.stream(
                "GET",
                self._url("/realtime/v1/changes"),
                params=params,
                headers=self._headers(),
                timeout=timeout,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise GatewayError(f"push channel refused: {response.text}", status=response.status_code)
                async for table in _parse_change_events(response.aiter_lines()):
                    yield table
        except httpx.HTTPError as exc:
            raise GatewayError(f"push channel dropped: {exc}") from exc

    async def aclose(self) -> None:
        await self._http.aclose()


async def _parse_change_events(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Minimal SSE framing: collect event/data fields until a blank line."""
    event, data = "message", []
    async for line in lines:
        if line == "":
            if event == "change" and data:
                try:
                    table = json.loads("\n".join(data)).get("table")
                except ValueError:
                    logger.warning("Ignoring malformed change frame: %r", data)
                    table = None
                if table:
                    yield table
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
