"""Tests for SSE formatting of routed completion streams."""

from __future__ import annotations

import json

import pytest

from src.agent.model_router.router import SmartRouter
from src.agent.model_router.types import CompletionRequest, Message, ModelRequest
from src.infra.streaming import EventType, RoutingStreamEvent, routing_event_stream


def _parse(sse: str) -> tuple[str, dict]:
    event_line, data_line = sse.strip().split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


@pytest.fixture
async def selection(registry):
    router = SmartRouter(registry)
    request = ModelRequest(messages=[Message(role="user", content="hello there")])
    return await router.select_model(request)


def _open_stream(gateway, model_id: str):
    request = CompletionRequest(messages=[Message(role="user", content="hello")])
    return gateway.stream(model_id, request)


def test_event_to_sse_format():
    event = RoutingStreamEvent(type=EventType.TOKEN, data="Hi", metadata={"model_id": "m"})

    name, payload = _parse(event.to_sse())

    assert name == "token"
    assert payload["data"] == "Hi"
    assert payload["metadata"] == {"model_id": "m"}
    assert event.to_sse().endswith("\n\n")


@pytest.mark.asyncio
async def test_stream_emits_selection_tokens_and_done(selection, gateway, mock_provider):
    mock_provider.script(responses={selection.model.id: "one two three four"})
    stream = _open_stream(gateway, selection.model.id)

    events = [_parse(e) async for e in routing_event_stream(selection, stream)]

    names = [name for name, _ in events]
    assert names == ["selection", "token", "token", "done"]
    assert events[0][1]["data"]["model_id"] == selection.model.id
    assert "".join(p["data"] for n, p in events if n == "token") == "one two three four"
    assert events[-1][1]["data"]["finish_reason"] == "stop"
    assert events[-1][1]["metadata"]["token_count"] == 2


@pytest.mark.asyncio
async def test_stream_emits_error_event_on_provider_failure(selection, gateway, mock_provider):
    mock_provider.script(failures={selection.model.id})
    stream = _open_stream(gateway, selection.model.id)

    events = [_parse(e) async for e in routing_event_stream(selection, stream)]

    assert [name for name, _ in events] == ["selection", "error"]
    assert events[-1][1]["data"]["model_id"] == selection.model.id


@pytest.mark.asyncio
async def test_client_disconnect_cancels_provider_stream(selection, gateway, mock_provider):
    mock_provider.script(responses={selection.model.id: "a b c d e f g h i"})
    stream = _open_stream(gateway, selection.model.id)
    sse = routing_event_stream(selection, stream)

    await sse.__anext__()  # selection
    await sse.__anext__()  # first token
    await sse.aclose()

    assert stream.cancelled
    assert mock_provider.released_streams == [selection.model.id]
