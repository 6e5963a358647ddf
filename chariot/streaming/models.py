"""
Streaming dataclasses: parsed frames, public events and per-stream stats.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FrameStatus(Enum):
    """Values of the ``status`` field carried by each SSE payload."""
    STREAMING = "STREAMING"
    DONE = "DONE"
    ERROR = "ERROR"


class StreamEventKind(Enum):
    """Event kinds a caller can subscribe to."""
    MESSAGE = "message"
    COMPLETE = "complete"
    ERROR = "error"
    END = "end"


class StreamState(Enum):
    """Lifecycle of a conversation stream."""
    IDLE = "idle"
    ACTIVE = "active"
    TERMINATED = "terminated"


FRAME_EVENT_KINDS: dict[FrameStatus, StreamEventKind] = {
    FrameStatus.STREAMING: StreamEventKind.MESSAGE,
    FrameStatus.DONE: StreamEventKind.COMPLETE,
    FrameStatus.ERROR: StreamEventKind.ERROR,
}


@dataclass(frozen=True)
class SSEFrame:
    """One classified ``data:`` line."""
    status: FrameStatus
    payload: dict[str, Any]

    def to_event(self) -> StreamEvent:
        return StreamEvent(FRAME_EVENT_KINDS[self.status], self.payload)


@dataclass(frozen=True)
class StreamEvent:
    """
    Public notification unit.

    ``data`` is the server payload for message/complete events and for
    errors reported by the server, a description string for errors raised
    on the client side, and ``None`` for end.
    """
    kind: StreamEventKind
    data: dict[str, Any] | str | None = None

    @classmethod
    def error(cls, description: str) -> StreamEvent:
        return cls(StreamEventKind.ERROR, description)

    @classmethod
    def end(cls) -> StreamEvent:
        return cls(StreamEventKind.END)

    @property
    def is_terminal(self) -> bool:
        return self.kind is StreamEventKind.END


StreamListener = Callable[[Any], None]
EventPublisher = Callable[[StreamEvent], None]


@dataclass
class StreamingStats:
    """Counters for one stream, updated as chunks and events flow through."""
    chunks: int = 0
    bytes_received: int = 0
    frames: int = 0
    events: dict[str, int] = field(default_factory=dict)

    def record_chunk(self, size: int) -> None:
        self.chunks += 1
        self.bytes_received += size

    def record_frame(self) -> None:
        self.frames += 1

    def record_event(self, event: StreamEvent) -> None:
        key = event.kind.value
        self.events[key] = self.events.get(key, 0) + 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "chunks": self.chunks,
            "bytes_received": self.bytes_received,
            "frames": self.frames,
            "events": dict(self.events),
        }
