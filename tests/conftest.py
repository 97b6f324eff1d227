"""Shared fixtures for diff-proxy tests."""

from __future__ import annotations

import json

import httpx
import pytest

from diff_proxy.core.cache import SessionCache
from diff_proxy.types import InterceptionResult


def sse(*events: tuple[str, dict | str | None]) -> str:
    """Build an SSE body from ``(event_name, payload)`` pairs."""
    parts = []
    for name, payload in events:
        lines = [f"event: {name}"]
        if payload is not None:
            data = payload if isinstance(payload, str) else json.dumps(payload)
            lines.append(f"data: {data}")
        parts.append("\n".join(lines) + "\n\n")
    return "".join(parts)


def hello_stream() -> str:
    """message_start -> block 0 -> "Hel" + "lo" -> end_turn with usage."""
    return sse(
        ("message_start", {
            "type": "message_start",
            "message": {
                "id": "msg_01",
                "type": "message",
                "role": "assistant",
                "model": "claude-sonnet-4-20250514",
                "content": [],
                "stop_reason": None,
                "usage": {"input_tokens": 12, "output_tokens": 1},
            },
        }),
        ("content_block_start", {
            "type": "content_block_start",
            "index": 0,
            "content_block": {"type": "text", "text": ""},
        }),
        ("ping", {"type": "ping"}),
        ("content_block_delta", {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": "Hel"},
        }),
        ("content_block_delta", {
            "type": "content_block_delta",
            "index": 0,
            "delta": {"type": "text_delta", "text": "lo"},
        }),
        ("content_block_stop", {"type": "content_block_stop", "index": 0}),
        ("message_delta", {
            "type": "message_delta",
            "delta": {"stop_reason": "end_turn", "stop_sequence": None},
            "usage": {"output_tokens": 5},
        }),
        ("message_stop", {"type": "message_stop"}),
    )


def chat_body(model: str = "claude-sonnet-4", n_messages: int = 1, **extra) -> dict:
    messages = []
    for i in range(n_messages):
        role = "user" if i % 2 == 0 else "assistant"
        messages.append({"role": role, "content": f"message {i}"})
    return {"model": model, "max_tokens": 1024, "messages": messages, **extra}


class RecordingReporter:
    """Reporter that keeps every result it is handed."""

    def __init__(self) -> None:
        self.results: list[InterceptionResult] = []

    def report(self, result: InterceptionResult) -> None:
        self.results.append(result)


class FakeUpstream:
    """httpx.MockTransport handler that records requests and returns canned responses."""

    def __init__(self, responses: list[httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = responses or []

    def queue(self, response: httpx.Response) -> None:
        self._responses.append(response)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            return self._responses.pop(0)
        return httpx.Response(200, json={"ok": True})

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def cache() -> SessionCache:
    return SessionCache()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def upstream_client(upstream) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))
