"""
Pooled httpx clients for the version lookups and the pull request state checker.

Each collaborator that talks HTTP owns one ``HTTPConnectionPool`` and closes
it when the pass ends. The underlying client is created on first use.
"""

import asyncio
from typing import Any

import httpx
import structlog

from depsync.exceptions import RemoteError, RemotePermissionError, TransientRemoteError

log = structlog.get_logger(__name__)

GITHUB_MEDIA_TYPE = "application/vnd.github+json"


def github_headers(token: str | None = None) -> dict[str, str]:
    """Headers for GitHub REST calls, authenticated when a token is given."""
    headers = {"Accept": GITHUB_MEDIA_TYPE}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class HTTPConnectionPool:
    """Keep-alive HTTP/2 client bound to one base URL."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        max_connections: int = 10,
    ) -> None:
        self.base_url = base_url
        self.headers = headers or {}
        self.timeout = timeout
        self.limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max(1, max_connections // 2),
            keepalive_expiry=30.0,
        )
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def initialize(self) -> httpx.AsyncClient:
        async with self._lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    headers=self.headers,
                    timeout=self.timeout,
                    limits=self.limits,
                    http2=True,
                )
                log.debug("http_pool_opened", base_url=self.base_url)
            return self._client

    async def close(self) -> None:
        async with self._lock:
            client, self._client = self._client, None
        if client is not None:
            await client.aclose()
            log.debug("http_pool_closed", base_url=self.base_url)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        client = self._client or await self.initialize()
        response = await client.get(path, **kwargs)
        log.debug("http_get", base_url=self.base_url, path=path, status=response.status_code)
        return response

    async def __aenter__(self) -> "HTTPConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def raise_for_remote_status(response: httpx.Response) -> None:
    """Translate an error response into the depsync remote error hierarchy.

    Raises:
        TransientRemoteError: For 429 and 5xx responses, and for 401/403
            responses that report an exhausted rate limit
        RemotePermissionError: For other 401 and 403 responses
        RemoteError: For any other 4xx response
    """
    status = response.status_code
    if status < 400:
        return

    message = f"{response.request.method} {response.request.url.path} failed"
    if status == 429 or status >= 500:
        raise TransientRemoteError(message, status_code=status)
    if status in (401, 403):
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise TransientRemoteError(f"{message}: rate limited", status_code=status)
        raise RemotePermissionError(message, status_code=status)
    raise RemoteError(message, status_code=status)
