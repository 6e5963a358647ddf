"""
Chariot API client with server-sent-event conversation streaming.

Example:
    async with ChariotClient(api_key, base_path) as client:
        stream = client.stream_conversation(
            {"message": "Hello", "application_id": "app_123"}
        )
        stream.on("message", lambda data: print(data["message"]))
        stream.on("end", lambda _: print("done"))
        await stream.wait_closed()
"""

from __future__ import annotations

from .client import ChariotClient
from .config import Configuration
from .exceptions import (
    ChariotError,
    MalformedFrameError,
    StreamSetupError,
    StreamTransportError,
)
from .models import CreateOrContinueConversation
from .streaming import (
    ConversationStream,
    StreamEvent,
    StreamEventKind,
    StreamState,
)

__all__ = [
    # Errors
    "ChariotError",
    # Client
    "ChariotClient",
    "Configuration",
    "ConversationStream",
    "CreateOrContinueConversation",
    "MalformedFrameError",
    "StreamEvent",
    "StreamEventKind",
    "StreamSetupError",
    "StreamState",
    "StreamTransportError",
]
