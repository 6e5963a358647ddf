"""
HTTP transports for conversation streams.

A transport sends the streaming POST and knows which chunk source can read
its responses. It is chosen once, when the client is built, so the launcher
never has to inspect a response to decide how to read it.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

import httpx

from .models import StreamingStats
from .readers import ChunkSource, PullChunkSource, PushChunkSource

TRANSPORT_KINDS = ("async", "threaded")

# Read budget covers the pause before the first token
DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=300.0)


class StreamTransport(ABC):
    """Sends streaming requests and builds the matching chunk source."""

    def __init__(self, default_encoding: str = "utf-8"):
        self.default_encoding = default_encoding

    @abstractmethod
    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        """Build (but do not send) a request."""

    @abstractmethod
    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and return once the response headers arrived."""

    @abstractmethod
    def chunk_source(
        self, response: httpx.Response, stats: StreamingStats | None = None
    ) -> ChunkSource:
        """Build the chunk source reading ``response``."""

    @abstractmethod
    async def close_response(self, response: httpx.Response) -> None:
        """Release the connection held by ``response``."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release resources owned by the transport."""


class AsyncHttpTransport(StreamTransport):
    """Transport on top of ``httpx.AsyncClient``; reads with the pull source."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: httpx.Timeout | None = None,
        default_encoding: str = "utf-8",
    ):
        super().__init__(default_encoding)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout or DEFAULT_TIMEOUT)

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        return self._client.build_request(method, url, **kwargs)

    async def send(self, request: httpx.Request) -> httpx.Response:
        return await self._client.send(request, stream=True)

    def chunk_source(
        self, response: httpx.Response, stats: StreamingStats | None = None
    ) -> ChunkSource:
        return PullChunkSource(
            response, default_encoding=self.default_encoding, stats=stats
        )

    async def close_response(self, response: httpx.Response) -> None:
        await response.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _close_orphaned_response(future: Future) -> None:
    """Close a response whose request was aborted while it was being sent."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class ThreadedHttpTransport(StreamTransport):
    """
    Transport on top of a blocking ``httpx.Client``; reads with the push source.

    Blocking calls run on a worker pool. Listeners are still invoked from the
    event loop thread only.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: httpx.Timeout | None = None,
        executor: ThreadPoolExecutor | None = None,
        default_encoding: str = "utf-8",
    ):
        super().__init__(default_encoding)
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout or DEFAULT_TIMEOUT)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            thread_name_prefix="chariot-stream"
        )

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        return self._client.build_request(method, url, **kwargs)

    async def send(self, request: httpx.Request) -> httpx.Response:
        future = self._executor.submit(self._client.send, request, stream=True)
        try:
            return await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            future.add_done_callback(_close_orphaned_response)
            raise

    def chunk_source(
        self, response: httpx.Response, stats: StreamingStats | None = None
    ) -> ChunkSource:
        return PushChunkSource(
            response,
            executor=self._executor,
            default_encoding=self.default_encoding,
            stats=stats,
        )

    async def close_response(self, response: httpx.Response) -> None:
        response.close()

    async def aclose(self) -> None:
        if self._owns_client:
            self._client.close()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)


def create_transport(
    kind: str,
    *,
    timeout: httpx.Timeout | None = None,
    default_encoding: str = "utf-8",
) -> StreamTransport:
    """Build the transport named in the ``streaming.transport`` setting."""
    if kind == "async":
        return AsyncHttpTransport(timeout=timeout, default_encoding=default_encoding)
    if kind == "threaded":
        return ThreadedHttpTransport(timeout=timeout, default_encoding=default_encoding)
    raise ValueError(
        f"Unknown stream transport '{kind}', expected one of {TRANSPORT_KINDS}"
    )
