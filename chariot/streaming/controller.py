"""
Caller-facing handle for a conversation stream.

``ConversationStream`` owns the listener registry and the stream state
(idle, active, terminated). Whatever ends a stream, whether the server
finishing, a fault or ``abort()``, listeners see exactly one ``end`` event
and nothing after it.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator

from ..logging_utils import ContextualLogger
from ..models import ConversationRequest, conversation_id_of, stream_request
from .launcher import RequestLauncher
from .models import (
    StreamEvent,
    StreamEventKind,
    StreamingStats,
    StreamListener,
    StreamState,
)


class ConversationStream:
    """
    Handle returned by ``ChariotClient.stream_conversation``.

    Listeners are called with one argument: the payload dict for
    ``message``/``complete``, the payload or a description string for
    ``error``, and ``None`` for ``end``.
    """

    def __init__(
        self,
        launcher: RequestLauncher,
        conversation: ConversationRequest,
        *,
        stream_id: str | None = None,
    ):
        self._launcher = launcher
        self._conversation = stream_request(conversation)
        self._listeners: dict[StreamEventKind, list[StreamListener]] = {
            kind: [] for kind in StreamEventKind
        }
        self._state = StreamState.IDLE
        self._released = False
        self._task: asyncio.Task[None] | None = None

        self.stream_id = stream_id or uuid.uuid4().hex[:12]
        self.stats = StreamingStats()
        self._logger = ContextualLogger(
            {
                "stream_id": self.stream_id,
                "conversation_id": conversation_id_of(conversation),
            },
            name=__name__,
        )

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is StreamState.TERMINATED

    def start(self) -> ConversationStream:
        """Launch the request. Must be called from a running event loop."""
        if self._state is not StreamState.IDLE:
            raise RuntimeError(f"Stream {self.stream_id} already started")

        self._state = StreamState.ACTIVE
        self._task = self._launcher.launch(
            self._conversation,
            self._publish,
            stats=self.stats,
            stream_id=self.stream_id,
        )
        self._logger.info("Conversation stream started")
        return self

    def on(
        self, kind: StreamEventKind | str, listener: StreamListener
    ) -> ConversationStream:
        """Register ``listener`` for ``kind``; listeners run in registration order."""
        kind = StreamEventKind(kind)
        if self._released:
            self._logger.debug("Listener registered after stream end", kind=kind.value)
            return self
        self._listeners[kind].append(listener)
        return self

    def abort(self) -> None:
        """Cancel the request and emit ``end`` now. Safe to call repeatedly."""
        if self._state is StreamState.TERMINATED:
            return
        if self._task is not None:
            self._task.cancel()
        self._logger.info("Conversation stream abort requested")
        self._terminate()

    def events(self) -> AsyncIterator[StreamEvent]:
        """
        Iterate over events as they arrive, ``end`` included.

        Subscribes immediately, so events published after this call are
        never missed even if iteration starts later.
        """
        queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        if self._released:
            queue.put_nowait(StreamEvent.end())
        for kind in StreamEventKind:
            self.on(kind, lambda data, kind=kind: queue.put_nowait(StreamEvent(kind, data)))

        async def iterate() -> AsyncIterator[StreamEvent]:
            while True:
                event = await queue.get()
                yield event
                if event.is_terminal:
                    return

        return iterate()

    async def wait_closed(self) -> None:
        """Wait for the background request to finish; never raises."""
        if self._task is not None:
            await asyncio.wait([self._task])

    async def __aenter__(self) -> ConversationStream:
        if self._state is StreamState.IDLE:
            self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.abort()
        await self.wait_closed()

    def _publish(self, event: StreamEvent) -> None:
        if self._state is not StreamState.ACTIVE:
            return
        if event.is_terminal:
            self._terminate()
            return

        self.stats.record_event(event)
        self._logger.debug("Stream event", kind=event.kind.value)
        self._deliver(event.kind, event.data, list(self._listeners[event.kind]))

    def _terminate(self) -> None:
        self._state = StreamState.TERMINATED
        self.stats.record_event(StreamEvent.end())
        self._logger.info("Conversation stream ended", **self.stats.as_dict())

        # Deliver to the live list so listeners added while ``end`` is being
        # delivered still receive it, then release everything.
        self._deliver(StreamEventKind.END, None, self._listeners[StreamEventKind.END])
        self._released = True
        for listeners in self._listeners.values():
            listeners.clear()

    def _deliver(
        self, kind: StreamEventKind, data: object, listeners: list[StreamListener]
    ) -> None:
        index = 0
        while index < len(listeners):
            # A listener may have aborted the stream; nothing follows ``end``
            if kind is not StreamEventKind.END and self._state is StreamState.TERMINATED:
                break
            listener = listeners[index]
            index += 1
            try:
                listener(data)
            except Exception:
                self._logger.exception("Stream listener failed", kind=kind.value)
