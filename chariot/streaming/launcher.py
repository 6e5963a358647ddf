"""
Request launcher for conversation streams.

Sends ``POST {base_path}/conversations``, validates the response and feeds
the body through the transport's chunk source into the frame parser. Every
fault, except an abort, ends the stream with an ``error`` event followed by
``end``.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from ..exceptions import StreamSetupError
from ..logging_utils import StreamErrorHandler, operation_context
from ..models import (
    ConversationRequest,
    CreateOrContinueConversation,
    conversation_id_of,
)
from .models import EventPublisher, StreamEvent, StreamingStats
from .parser import StreamingParser
from .transports import StreamTransport

# Statuses that never carry a body
EMPTY_BODY_STATUSES = (204, 205)

logger = structlog.get_logger(__name__)


def _has_body(response: httpx.Response) -> bool:
    if response.status_code in EMPTY_BODY_STATUSES:
        return False
    return response.headers.get("content-length") != "0"


class RequestLauncher:
    """Opens conversation streams against the Chariot API."""

    def __init__(self, base_path: str, api_key: str, transport: StreamTransport):
        self.base_path = base_path.rstrip("/")
        self.api_key = api_key
        self.transport = transport
        self.parser = StreamingParser()

    def build_request(self, conversation: CreateOrContinueConversation) -> httpx.Request:
        """Build the streaming POST for ``conversation``."""
        return self.transport.build_request(
            "POST",
            f"{self.base_path}/conversations",
            content=conversation.model_dump_json(exclude_none=True),
            headers={
                "Content-Type": "application/json",
                "Accept": "text/event-stream",
                "Authorization": f"Bearer {self.api_key}",
            },
        )

    def launch(
        self,
        conversation: ConversationRequest,
        publish: EventPublisher,
        *,
        stats: StreamingStats | None = None,
        stream_id: str | None = None,
    ) -> asyncio.Task[None]:
        """
        Start streaming ``conversation`` in a background task.

        The task is returned before any I/O happens; cancelling it is how a
        stream is aborted. ``publish`` receives every event, ``end`` last.
        """
        return asyncio.create_task(
            self._run(conversation, publish, stats, stream_id),
            name=f"chariot-stream-{stream_id}" if stream_id else None,
        )

    async def _run(
        self,
        conversation: ConversationRequest,
        publish: EventPublisher,
        stats: StreamingStats | None,
        stream_id: str | None,
    ) -> None:
        context = {
            "stream_id": stream_id,
            "conversation_id": conversation_id_of(conversation),
        }
        try:
            async with operation_context("stream_conversation", context=context):
                await self._stream(conversation, publish, stats)
        except asyncio.CancelledError:
            logger.info("Conversation stream aborted", **context)
            raise
        except Exception as e:
            publish(StreamEvent.error(StreamErrorHandler.describe(e)))

        publish(StreamEvent.end())

    async def _stream(
        self,
        conversation: ConversationRequest,
        publish: EventPublisher,
        stats: StreamingStats | None,
    ) -> None:
        if not isinstance(conversation, CreateOrContinueConversation):
            conversation = CreateOrContinueConversation.model_validate(conversation)
        request = self.build_request(conversation)
        try:
            response = await self.transport.send(request)
        except httpx.HTTPError as e:
            raise StreamSetupError(f"{type(e).__name__}: {e}") from e

        try:
            if not response.is_success:
                raise StreamSetupError(
                    f"POST request failed: {response.status_code}",
                    status_code=response.status_code,
                )
            if not _has_body(response):
                raise StreamSetupError(
                    f"POST request failed: {response.status_code} (empty body)",
                    status_code=response.status_code,
                )

            source = self.transport.chunk_source(response, stats=stats)
            await source.run(lambda text: self._dispatch(text, publish, stats))
        finally:
            await self.transport.close_response(response)

    def _dispatch(
        self,
        text: str,
        publish: EventPublisher,
        stats: StreamingStats | None,
    ) -> None:
        for frame in self.parser.parse(text):
            if stats is not None:
                stats.record_frame()
            publish(frame.to_event())
