"""
Conversation streaming for the Chariot client.

This package contains:
- SSE frame parsing
- Pull and push chunk sources over httpx responses
- The request launcher
- The caller-facing stream handle
"""

from __future__ import annotations

from .controller import ConversationStream
from .launcher import RequestLauncher
from .models import (
    FrameStatus,
    SSEFrame,
    StreamEvent,
    StreamEventKind,
    StreamingStats,
    StreamState,
)
from .parser import StreamingParser, iter_frames, parse_chunk
from .readers import ChunkDecoder, ChunkSource, PullChunkSource, PushChunkSource
from .transports import (
    AsyncHttpTransport,
    StreamTransport,
    ThreadedHttpTransport,
    create_transport,
)

__all__ = [
    "AsyncHttpTransport",
    "ChunkDecoder",
    "ChunkSource",
    "ConversationStream",
    "FrameStatus",
    "PullChunkSource",
    "PushChunkSource",
    "RequestLauncher",
    "SSEFrame",
    "StreamEvent",
    "StreamEventKind",
    "StreamState",
    "StreamTransport",
    "StreamingParser",
    "StreamingStats",
    "ThreadedHttpTransport",
    "create_transport",
    "iter_frames",
    "parse_chunk",
]
