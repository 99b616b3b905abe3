from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping
from urllib.parse import urlparse

import httpx
from stashapi.stashapp import StashInterface

from similar_scenes.utils.url_helpers import graphql_endpoint, has_valid_api_key

_log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
_DEFAULT_HEADERS: Mapping[str, str] = {
    "User-Agent": "similar-scenes/1.0",
    "Content-Type": "application/json",
}


class GatewayError(RuntimeError):
    """Base class for every failure reading from Stash."""


class TransportError(GatewayError):
    """The request never produced a usable HTTP response."""


class ProtocolError(GatewayError):
    """The server answered, but not with usable GraphQL data."""

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ItemNotFound(GatewayError):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"scene {item_id} not found")
        self.item_id = item_id


def _trim(text: str | None, *, limit: int = 200) -> str | None:
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _coerce_timeout(value: httpx.Timeout | float | int | None) -> httpx.Timeout:
    if isinstance(value, httpx.Timeout):
        return value
    if isinstance(value, (int, float)):
        return httpx.Timeout(value, connect=min(float(value), 10.0))
    return _DEFAULT_TIMEOUT


class GraphQLTransport:
    """Executes one GraphQL operation and returns its ``data`` mapping."""

    async def execute(self, query: str, variables: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


def extract_data(payload: Any) -> Dict[str, Any]:
    """Validate a GraphQL response envelope and return its ``data`` block."""
    if not isinstance(payload, Mapping):
        raise ProtocolError("GraphQL response is not a JSON object")
    errors = payload.get("errors")
    if errors:
        raise ProtocolError(f"GraphQL errors: {_trim(str(errors))}", errors=list(errors))
    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise ProtocolError("GraphQL response carries no data")
    return dict(data)


class HTTPGraphQLTransport(GraphQLTransport):
    """POSTs operations to ``{base_url}/graphql`` with httpx."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: httpx.Timeout | float | int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._endpoint = graphql_endpoint(base_url)
        self._timeout = _coerce_timeout(timeout)
        headers = dict(_DEFAULT_HEADERS)
        if has_valid_api_key(api_key):
            headers["ApiKey"] = api_key  # type: ignore[assignment]
        self._headers = headers
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=self._timeout,
                        headers=self._headers,
                        transport=self._transport,
                        follow_redirects=True,
                    )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(self, query: str, variables: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        client = await self._get_client()
        body = {"query": query, "variables": dict(variables or {})}
        try:
            response = await client.post(self._endpoint, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"status-{exc.response.status_code}: {_trim(exc.response.text)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"network-error: {exc}") from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProtocolError("Response body is not valid JSON") from exc
        return extract_data(payload)


class StashInterfaceTransport(GraphQLTransport):
    """Runs operations through stashapi's blocking client on a worker thread."""

    def __init__(self, interface: StashInterface) -> None:
        self._interface = interface

    async def execute(self, query: str, variables: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        try:
            data = await asyncio.to_thread(self._interface.call_GQL, query, dict(variables or {}))
        except Exception as exc:
            # stashapi raises plain Exceptions for both network and GraphQL errors
            raise TransportError(f"stash interface request failed: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ProtocolError("GraphQL response carries no data")
        return dict(data)


def construct_stash_interface(url: str, api_key: str | None = None) -> StashInterface:
    parsed = urlparse(url)
    # Host and port are passed separately so stashapi doesn't append a default port
    conn: Dict[str, Any] = {
        'Scheme': parsed.scheme or 'http',
        'Host': parsed.hostname or 'localhost',
        'Port': parsed.port if parsed.port else 9999,
    }
    if has_valid_api_key(api_key):
        conn['ApiKey'] = api_key
    return StashInterface(conn)
