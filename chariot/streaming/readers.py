"""
Chunk sources that turn a streaming HTTP response into decoded text.

Two delivery models are supported:

- ``PullChunkSource`` reads an ``httpx.AsyncClient`` response by awaiting
  one chunk at a time.
- ``PushChunkSource`` wraps a blocking ``httpx.Client`` response. A worker
  thread iterates the body and pushes data/end/error callbacks onto the
  event loop, so listeners are only ever called from the loop thread.

Both share ``ChunkDecoder`` and hand complete lines to a text sink.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any

import httpx
import structlog

from ..exceptions import StreamTransportError
from .models import StreamingStats

DEFAULT_ENCODING = "utf-8"

TextSink = Callable[[str], None]

# Faults raised by httpx while a body is being read
READ_ERRORS = (httpx.HTTPError, httpx.StreamError, OSError)

logger = structlog.get_logger(__name__)


class ChunkDecoder:
    """
    Stateful bytes-to-text decoder.

    Multi-byte characters split across chunks are held back by the
    incremental codec. Text after the last newline is held back too and
    prepended to the next chunk, so a line is never handed out in pieces.
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING):
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)("replace")
        self._pending = ""

    def decode(self, chunk: bytes) -> str:
        """Return the complete lines available after adding ``chunk``."""
        text = self._pending + self._decoder.decode(chunk)
        head, newline, tail = text.rpartition("\n")
        if not newline:
            self._pending = text
            return ""
        self._pending = tail
        return head + newline

    def flush(self) -> str:
        """Return whatever is left once the body is exhausted."""
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return text


class ChunkSource(ABC):
    """A response body that delivers decoded text to a sink."""

    def __init__(
        self,
        response: httpx.Response,
        *,
        default_encoding: str = DEFAULT_ENCODING,
        stats: StreamingStats | None = None,
    ):
        self._response = response
        self._stats = stats
        self._decoder = ChunkDecoder(response.charset_encoding or default_encoding)

    def _forward(self, chunk: bytes, sink: TextSink) -> None:
        if self._stats is not None:
            self._stats.record_chunk(len(chunk))
        text = self._decoder.decode(chunk)
        if text:
            sink(text)

    def _finish(self, sink: TextSink) -> None:
        text = self._decoder.flush()
        if text:
            sink(text)

    @abstractmethod
    async def run(self, sink: TextSink) -> None:
        """
        Deliver the whole body to ``sink`` and return once it is exhausted.

        Raises:
            StreamTransportError: If reading the body fails.
            asyncio.CancelledError: If the stream is aborted meanwhile.
        """


class PullChunkSource(ChunkSource):
    """Reads an async response one chunk at a time."""

    async def run(self, sink: TextSink) -> None:
        try:
            async for chunk in self._response.aiter_bytes():
                self._forward(chunk, sink)
        except READ_ERRORS as e:
            raise StreamTransportError(f"Failed to read stream: {e}") from e

        self._finish(sink)


class PushChunkSource(ChunkSource):
    """Receives chunks from a worker thread reading a blocking response."""

    def __init__(
        self,
        response: httpx.Response,
        *,
        executor: Executor | None = None,
        **kwargs: Any,
    ):
        super().__init__(response, **kwargs)
        self._executor = executor
        self._stopped = threading.Event()

    async def run(self, sink: TextSink) -> None:
        loop = asyncio.get_running_loop()
        finished: asyncio.Future[None] = loop.create_future()

        def on_data(chunk: bytes) -> None:
            if finished.done():
                return
            try:
                self._forward(chunk, sink)
            except Exception as e:
                self._stopped.set()
                finished.set_exception(e)

        def on_end() -> None:
            if finished.done():
                return
            try:
                self._finish(sink)
            except Exception as e:
                finished.set_exception(e)
                return
            finished.set_result(None)

        def on_error(error: BaseException) -> None:
            if finished.done():
                return
            failure = StreamTransportError(f"Failed to read stream: {error}")
            failure.__cause__ = error
            finished.set_exception(failure)

        worker = loop.run_in_executor(
            self._executor, self._pump, loop, on_data, on_end, on_error
        )
        try:
            await finished
        finally:
            if not worker.done():
                self._stop()

    def _stop(self) -> None:
        """Ask the worker to stop and unblock it if it is waiting on a read."""
        self._stopped.set()
        try:
            self._response.close()
        except Exception as e:
            # The worker owns the stream; it closes it again on its way out
            logger.debug("Closing interrupted response failed", error=str(e))

    def _pump(
        self,
        loop: asyncio.AbstractEventLoop,
        on_data: Callable[[bytes], None],
        on_end: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """Worker thread body: iterate the response and push callbacks."""

        def schedule(callback: Callable[..., None], *args: Any) -> None:
            if self._stopped.is_set():
                return
            # The loop may already be closed once the caller has gone away
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(callback, *args)

        try:
            for chunk in self._response.iter_bytes():
                if self._stopped.is_set():
                    return
                schedule(on_data, chunk)
        except Exception as e:
            if self._stopped.is_set():
                logger.debug("Read interrupted by stream shutdown", error=str(e))
            else:
                schedule(on_error, e)
            return
        finally:
            with contextlib.suppress(*READ_ERRORS):
                self._response.close()

        schedule(on_end)
