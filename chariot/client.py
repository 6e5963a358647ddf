"""
Chariot API client with conversation streaming.
"""

from __future__ import annotations

from typing import Any

import httpx

from .config import Configuration
from .logging_utils import configure_logging
from .models import ConversationRequest
from .streaming.controller import ConversationStream
from .streaming.launcher import RequestLauncher
from .streaming.transports import AsyncHttpTransport, StreamTransport, create_transport


class ChariotClient:
    """Entry point for streaming conversations from the Chariot API."""

    def __init__(
        self,
        api_key: str,
        base_path: str,
        transport: StreamTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_path = base_path.rstrip("/")
        self.transport = transport or AsyncHttpTransport()
        self._launcher = RequestLauncher(self.base_path, api_key, self.transport)

    @classmethod
    def from_configuration(
        cls, config: Configuration | None = None
    ) -> ChariotClient:
        """Build a client from YAML settings and the environment."""
        config = config or Configuration()
        configure_logging(config.get_logging_config())

        http_config = config.get_http_client_config()
        streaming_config = config.get_streaming_config()
        timeout = httpx.Timeout(
            connect=http_config["connect_timeout"],
            read=http_config["read_timeout"],
            write=http_config["write_timeout"],
            pool=http_config["pool_timeout"],
        )
        transport = create_transport(
            streaming_config["transport"],
            timeout=timeout,
            default_encoding=streaming_config["encoding"],
        )
        return cls(
            api_key=config.api_key,
            base_path=config.get_api_config()["base_path"],
            transport=transport,
        )

    def stream_conversation(
        self, conversation: ConversationRequest
    ) -> ConversationStream:
        """
        Stream a conversation.

        If ``conversation_id`` is provided the existing conversation is
        continued, otherwise a new one is created and its id arrives in the
        streamed payloads. The handle is returned right away; subscribe with
        ``on()`` and stop with ``abort()``. A dict request is validated in
        the stream task, so a bad one ends as ``error`` + ``end``. Must be
        called from a running event loop.
        """
        return ConversationStream(self._launcher, conversation).start()

    def get_statistics(self) -> dict[str, Any]:
        """Parser counters across every stream opened by this client."""
        return {"streaming": self._launcher.parser.get_stats()}

    async def aclose(self) -> None:
        """Close the HTTP transport."""
        await self.transport.aclose()

    async def __aenter__(self) -> ChariotClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()
