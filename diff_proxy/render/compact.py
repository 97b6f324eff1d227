"""One-line-per-request console format."""

from __future__ import annotations

from datetime import datetime

from rich.text import Text

from ..types import CacheAnalysis, CacheStatus
from .formatters import REQUEST_ARROW


def cache_label(analysis: CacheAnalysis | None) -> tuple[str, str] | None:
    """``(label, style)`` for the cache state, None for stateless requests."""
    if analysis is None:
        return None
    if analysis.status is CacheStatus.FIRST_REQUEST:
        return "[FIRST]", "blue"
    if analysis.status is CacheStatus.CACHE_BUSTED:
        return "[RESET]", "red"
    if analysis.has_diff:
        return "[DIFF]", "yellow"
    return "[CACHED]", "green"


def usage_summary(usage: dict | None) -> Text:
    out = Text()
    if not usage:
        return out
    cache_read = usage.get("cache_read_input_tokens") or 0
    cache_create = usage.get("cache_creation_input_tokens") or 0
    if cache_read > 0:
        out.append(f" cached:{cache_read}", style="cyan")
    if cache_create > 0:
        out.append(f" create:{cache_create}", style="magenta")
    out.append(
        f" in:{usage.get('input_tokens') or 0} out:{usage.get('output_tokens') or 0}",
        style="bright_black",
    )
    return out


def compact_line(
    style: str,
    session_key: str | None,
    method: str,
    url: str,
    status: int,
    duration_ms: float,
    analysis: CacheAnalysis | None,
    usage: dict | None,
    *,
    now: datetime | None = None,
) -> Text:
    timestamp = (now or datetime.now()).strftime("%H:%M:%S")
    line = Text()
    line.append(REQUEST_ARROW, style=style)
    if session_key:
        line.append(f" [{session_key}]", style=style)
    line.append(f" [{timestamp}] {method} {url} → {status} ({int(duration_ms)}ms)")
    label = cache_label(analysis)
    if label:
        line.append(" ")
        line.append(label[0], style=label[1])
    line.append_text(usage_summary(usage))
    return line
