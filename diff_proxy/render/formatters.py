"""Text builders for headers, bodies and diffs (rich ``Text`` objects)."""

from __future__ import annotations

import json
from typing import Any

from rich.text import Text

from ..core.differ import sort_differences
from ..types import DiffKind, DiffRecord, PathSegment

REQUEST_ARROW = ">>"
RESPONSE_ARROW = "<<"


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def format_headers(headers: dict[str, str]) -> str:
    filtered = {k: v for k, v in headers.items() if k.lower() != "host"}
    return json.dumps(filtered, indent=2, ensure_ascii=False)


def format_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return json.dumps(body, indent=2, ensure_ascii=False, default=str)


def format_path(path: list[PathSegment]) -> str:
    return ".".join(str(seg) for seg in path)


def format_diff(records: list[DiffRecord] | None, style: str = "") -> Text:
    """Render diff records, one change per line, in sorted order."""
    out = Text()
    if not records:
        out.append("  No differences from cached request", style=style)
        return out

    lines: list[tuple[str, str]] = []
    for d in sort_differences(records):
        if d.kind is DiffKind.ADDED:
            lines.append((f"  + Added: {format_path(d.path)} = {to_json(d.new)}", "green"))
        elif d.kind is DiffKind.REMOVED:
            lines.append((f"  - Removed: {format_path(d.path)}", "red"))
        elif d.kind is DiffKind.EDITED:
            lines.append((f"  ~ Changed: {format_path(d.path)}", "yellow"))
            lines.append((f"    - {to_json(d.old)}", "red"))
            lines.append((f"    + {to_json(d.new)}", "green"))
        elif d.kind is DiffKind.ARRAY and d.item is not None:
            lines.append((f"  ~ Array changed: {format_path(d.path)}[{d.index}]", "yellow"))
            if d.item.has_old:
                lines.append((f"    - {to_json(d.item.old)}", "red"))
            if d.item.has_new:
                lines.append((f"    + {to_json(d.item.new)}", "green"))

    for i, (line, line_style) in enumerate(lines):
        if i:
            out.append("\n")
        out.append(line, style=line_style)
    return out


def tag_lines(
    text: str | Text,
    style: str,
    session_key: str | None,
    *,
    is_response: bool = False,
    use_color_tag: bool = True,
) -> Text:
    """Prefix every line with the colored ``>>``/``<<`` tag and ``[key]``."""
    if isinstance(text, str):
        text = Text(text)
    if not use_color_tag:
        return text

    arrow = RESPONSE_ARROW if is_response else REQUEST_ARROW
    out = Text()
    for i, line in enumerate(text.split("\n", allow_blank=True)):
        if i:
            out.append("\n")
        out.append(arrow, style=style)
        if session_key:
            out.append(f" [{session_key}]", style=style)
        out.append(" ")
        out.append_text(line)
    return out
