"""
Tests for streaming conversations through the threaded (push) transport.
"""

import asyncio
import json
import threading

import httpx
import pytest

from chariot import ChariotClient, CreateOrContinueConversation
from chariot.streaming import StreamEventKind, ThreadedHttpTransport

REQUEST = CreateOrContinueConversation(message="Hi", application_id="app_123")


def sse(payload: dict) -> bytes:
    return f"data:{json.dumps(payload, ensure_ascii=False)}\n".encode()


def make_client(handler) -> ChariotClient:
    transport = ThreadedHttpTransport(
        httpx.Client(transport=httpx.MockTransport(handler))
    )
    return ChariotClient(
        api_key="test-key", base_path="https://chariot.test", transport=transport
    )


def record(stream) -> list:
    events = []
    for kind in StreamEventKind:
        stream.on(kind, lambda data, kind=kind: events.append((kind.value, data)))
    return events


@pytest.mark.asyncio
async def test_chunks_arrive_in_order():
    chunks = [
        sse({"status": "STREAMING", "message": "Hel"}),
        sse({"status": "STREAMING", "message": "lo"}),
        sse({"status": "DONE", "message": "Hello", "title": "Greeting"}),
    ]
    client = make_client(lambda request: httpx.Response(200, content=iter(chunks)))

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    await stream.wait_closed()

    assert [kind for kind, _ in events] == ["message", "message", "complete", "end"]
    assert events[2][1]["title"] == "Greeting"
    await client.aclose()


@pytest.mark.asyncio
async def test_multibyte_split_is_decoded():
    encoded = sse({"status": "DONE", "message": "über"})
    split_at = encoded.index("ü".encode()) + 1
    client = make_client(
        lambda request: httpx.Response(
            200, content=iter([encoded[:split_at], encoded[split_at:]])
        )
    )

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    await stream.wait_closed()

    assert events[0] == ("complete", {"status": "DONE", "message": "über"})
    await client.aclose()


@pytest.mark.asyncio
async def test_http_error_status():
    client = make_client(lambda request: httpx.Response(503, text="unavailable"))

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    await stream.wait_closed()

    assert [kind for kind, _ in events] == ["error", "end"]
    assert "503" in events[0][1]
    await client.aclose()


@pytest.mark.asyncio
async def test_read_error_reported_once():
    def body():
        yield sse({"status": "STREAMING"})
        raise httpx.ReadError("socket closed")

    client = make_client(lambda request: httpx.Response(200, content=body()))

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    await stream.wait_closed()

    assert [kind for kind, _ in events] == ["message", "error", "end"]
    assert events[1][1] == "Failed to read stream: socket closed"
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_frame():
    client = make_client(
        lambda request: httpx.Response(200, content=iter([b"data:not json\n"]))
    )

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    await stream.wait_closed()

    assert [kind for kind, _ in events] == ["error", "end"]
    assert "Failed to parse stream frame" in events[0][1]
    await client.aclose()


@pytest.mark.asyncio
async def test_abort_while_worker_is_blocked():
    release = threading.Event()

    def body():
        yield sse({"status": "STREAMING"})
        release.wait(timeout=5)
        yield sse({"status": "DONE"})

    client = make_client(lambda request: httpx.Response(200, content=body()))
    first_message = asyncio.Event()

    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    stream.on("message", lambda data: first_message.set())
    await asyncio.wait_for(first_message.wait(), timeout=5)

    stream.abort()
    await stream.wait_closed()
    release.set()
    # Give the worker a chance to push its late chunk
    await asyncio.sleep(0.05)

    assert [kind for kind, _ in events] == ["message", "end"]
    await client.aclose()


@pytest.mark.asyncio
async def test_abort_while_request_is_being_sent():
    entered = threading.Event()
    release = threading.Event()
    late_responses = []

    def handler(request: httpx.Request) -> httpx.Response:
        entered.set()
        release.wait(timeout=5)
        response = httpx.Response(200, content=iter([sse({"status": "DONE"})]))
        late_responses.append(response)
        return response

    client = make_client(handler)
    stream = client.stream_conversation(REQUEST)
    events = record(stream)
    assert await asyncio.to_thread(entered.wait, 5)

    stream.abort()
    await stream.wait_closed()
    assert [kind for kind, _ in events] == ["end"]

    release.set()
    for _ in range(100):
        if late_responses and late_responses[0].is_closed:
            break
        await asyncio.sleep(0.01)

    assert late_responses[0].is_closed
    assert [kind for kind, _ in events] == ["end"]
    await client.aclose()
