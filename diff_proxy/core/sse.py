"""
SSE (Server-Sent Events) stream parsing and message reconstruction.

The proxy captures the complete upstream body first and then folds it;
nothing here consumes a live stream.

Functions
---------
is_sse_response : True when response headers announce an event stream.
parse_sse_events : Split raw SSE text into :class:`SSEEvent` objects.
reconstruct_message : Fold Anthropic-style events into a single message.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from ..types import SSEEvent

_EVENT_FIELD = "event:"
_DATA_FIELD = "data:"

# Highest content block index accepted; later blocks are dropped
MAX_BLOCK_INDEX = 1024


def is_sse_response(headers: Mapping[str, str]) -> bool:
    """Return True if the ``content-type`` header is ``text/event-stream``."""
    content_type = ""
    for name, value in headers.items():
        if name.lower() == "content-type":
            content_type = value
            break
    return "text/event-stream" in content_type.lower()


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    return value[1:] if value.startswith(" ") else value


def _decode_data(lines: list[str]) -> Any:
    text = "\n".join(lines).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def parse_sse_events(raw: str | bytes) -> list[SSEEvent]:
    """
    Parse an SSE stream into a list of events.

    A line starting with ``event:`` opens a new event; the previous one is
    emitted at that point (or at end of input).  ``data:`` lines attach a
    payload to the open event and are joined with ``\\n`` when an event
    has several.  Payloads that parse as JSON are decoded, others are kept
    as raw strings, and an empty payload leaves ``data`` as ``None``.
    Lines seen before the first ``event:`` are ignored.

    Parameters
    ----------
    raw : str or bytes
        The complete response body.

    Returns
    -------
    list of SSEEvent
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    events: list[SSEEvent] = []
    name: str | None = None
    data_lines: list[str] = []

    for line in raw.split("\n"):
        line = line.rstrip("\r")
        if line.startswith(_EVENT_FIELD):
            if name is not None:
                events.append(SSEEvent(name, _decode_data(data_lines)))
            name = _field_value(line, _EVENT_FIELD)
            data_lines = []
        elif line.startswith(_DATA_FIELD) and name is not None:
            data_lines.append(_field_value(line, _DATA_FIELD))

    if name is not None:
        events.append(SSEEvent(name, _decode_data(data_lines)))
    return events


def _block_index(data: dict) -> int | None:
    index = data.get("index")
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index <= MAX_BLOCK_INDEX:
        return index
    return None


def _append_text(block: dict, field: str, value: str) -> None:
    current = block.get(field)
    block[field] = (current if isinstance(current, str) else "") + value


def reconstruct_message(events: Iterable[SSEEvent]) -> dict | None:
    """
    Rebuild the final message object from a sequence of stream events.

    ``message_start`` seeds the result, ``content_block_start`` places
    blocks by index, ``content_block_delta`` appends text (and thinking
    or partial tool-input JSON), ``message_delta`` sets ``stop_reason``
    and merges ``usage``.  Other events are ignored.

    Returns
    -------
    dict or None
        ``None`` when the stream never sent ``message_start``.  Otherwise
        the message with ``content`` listed in block-index order; indices
        that never received a block are ``None``.  Blocks whose index is
        above ``MAX_BLOCK_INDEX`` are dropped, as are deltas whose payload
        has the wrong type.
    """
    message: dict | None = None
    blocks: dict[int, dict] = {}
    partial_json: dict[int, list[str]] = {}

    for ev in events:
        data = ev.data if isinstance(ev.data, dict) else None
        if data is None:
            continue

        if ev.event == "message_start":
            if isinstance(data.get("message"), dict):
                message = dict(data["message"])
                message["content"] = []

        elif ev.event == "content_block_start":
            index = _block_index(data)
            if isinstance(data.get("content_block"), dict) and index is not None:
                blocks[index] = dict(data["content_block"])

        elif ev.event == "content_block_delta":
            index = _block_index(data)
            delta = data.get("delta")
            if index is None or index not in blocks or not isinstance(delta, dict):
                continue
            block = blocks[index]
            text, thinking = delta.get("text"), delta.get("thinking")
            if isinstance(text, str) and text:
                _append_text(block, "text", text)
            elif isinstance(thinking, str) and thinking:
                _append_text(block, "thinking", thinking)
            elif delta.get("type") == "input_json_delta" and isinstance(delta.get("partial_json"), str):
                partial_json.setdefault(index, []).append(delta["partial_json"])

        elif ev.event == "message_delta":
            delta = data.get("delta")
            if message is None or not isinstance(delta, dict):
                continue
            if delta.get("stop_reason"):
                message["stop_reason"] = delta["stop_reason"]
            if isinstance(data.get("usage"), dict):
                usage = message.get("usage")
                message["usage"] = {**(usage if isinstance(usage, dict) else {}), **data["usage"]}

    if message is None:
        return None

    for index, chunks in partial_json.items():
        joined = "".join(chunks)
        if not joined:
            continue
        try:
            blocks[index]["input"] = json.loads(joined)
        except ValueError:
            blocks[index]["partial_json"] = joined

    if blocks:
        message["content"] = [blocks.get(i) for i in range(max(blocks) + 1)]
    return message
