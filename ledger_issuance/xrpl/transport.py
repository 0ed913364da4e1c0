"""
Transport protocol for XRPL JSON-RPC calls.

Defines the seam where concrete HTTP implementations plug in. The JSON-RPC
client depends on this protocol, not on httpx directly, so the transport
can be swapped without editing client logic.

Concrete implementations:
    - HttpxTransport (default, one pooled httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

Lifetime:
    The connection is a scoped resource. HttpxTransport opens its
    AsyncClient lazily on first use and keeps it until ``aclose()``;
    use it (or the JsonRpcClient wrapping it) as an async context manager
    so it is released on every exit path. Concurrent requests share the
    client's connection pool.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

import httpx

log = logging.getLogger(__name__)


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Raises:
            Exception: On transport-level failures (connection refused,
                timeout, TLS error, non-2xx status). The callers map these
                to NetworkUnavailable.
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying connection. Idempotent."""
        ...


class HttpxTransport:
    """Default transport using one long-lived httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise RuntimeError("transport is closed")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send JSON-RPC request via the shared client."""
        client = self._ensure_client()
        response = await client.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._client is not None:
            await self._client.aclose()
            log.debug("transport closed")

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
