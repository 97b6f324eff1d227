"""ConsoleReporter: renders each intercepted request to the terminal."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console
from rich.text import Text

from ..types import CacheStatus, InterceptionResult, LoggingConfig
from .colors import ColorRotation
from .compact import compact_line
from .formatters import (
    REQUEST_ARROW,
    RESPONSE_ARROW,
    format_body,
    format_diff,
    format_headers,
    tag_lines,
    to_json,
)

RULE_WIDTH = 80


class ConsoleReporter:
    """Prints requests, diffs and responses in full or compact form.

    Each reported request takes the next color from the rotation so that
    interleaved output of concurrent requests stays distinguishable.
    """

    def __init__(
        self,
        config: LoggingConfig | None = None,
        console: Console | None = None,
        colors: ColorRotation | None = None,
    ) -> None:
        self.config = config or LoggingConfig()
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.colors = colors or ColorRotation()

    def report(self, result: InterceptionResult) -> None:
        style = self.colors.next()
        if self.config.compact:
            self.console.print(compact_line(
                style,
                result.session_key,
                result.request.method,
                result.request.url,
                result.status,
                result.duration_ms,
                result.analysis,
                result.usage,
            ))
            return

        self.console.print(Text("\n" + "━" * RULE_WIDTH, style=style))
        self._print_request(result, style)
        self._print_response(result, style)
        self.console.print(Text("━" * RULE_WIDTH + "\n", style=style))

    # -- helpers ----------------------------------------------------------

    def _heading(self, style: str, key: str | None, title: str, note: str = "", *, response: bool = False) -> Text:
        out = Text("\n")
        out.append(RESPONSE_ARROW if response else REQUEST_ARROW, style=style)
        if key:
            out.append(f" [{key}]", style=style)
        out.append(" ")
        out.append(title, style="bold")
        if note:
            out.append(note, style="bright_black")
        return out

    def _block(self, text: str | Text, style: str, key: str | None, *, response: bool = False) -> Text:
        return tag_lines(
            text, style, key,
            is_response=response,
            use_color_tag=self.config.use_color_tag,
        )

    def _print_request(self, result: InterceptionResult, style: str) -> None:
        cfg = self.config
        req = result.request
        key = req.session_key
        analysis = result.analysis

        line = Text()
        line.append(REQUEST_ARROW, style=style)
        if key:
            line.append(f" [{key}]", style=style)
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        line.append(f" [{stamp}] {req.method} {req.url}")
        self.console.print(line)

        if cfg.show_query and req.query:
            self.console.print(self._heading(style, key, "Query Parameters:"))
            self.console.print(self._block(to_json(req.query), style, key))

        if cfg.show_headers:
            if analysis is not None and analysis.status is CacheStatus.DIFFED:
                self.console.print(self._heading(
                    style, key, "Request Headers", " - Showing diff from previous request:",
                ))
                if analysis.header_diff:
                    self.console.print(format_diff(analysis.header_diff, style))
                else:
                    self.console.print(self._block("  No header changes", style, key))
            else:
                self.console.print(self._heading(style, key, "Headers:"))
                self.console.print(self._block(format_headers(req.headers), style, key))

        if not cfg.show_body or req.body is None:
            return
        if analysis is None:
            self.console.print(self._heading(style, key, "Request Body:"))
            self.console.print(self._block(format_body(req.body), style, key))
        elif analysis.status is CacheStatus.DIFFED:
            self.console.print(self._heading(
                style, key, "Request Body", " - Showing diff from previous request:",
            ))
            self.console.print(format_diff(analysis.body_diff, style))
        else:
            if analysis.status is CacheStatus.CACHE_BUSTED:
                note = f" (session: {key}) - Cache busted (history reset), starting fresh..."
            else:
                note = f" (session: {key}) - First request, caching..."
            self.console.print(self._heading(style, None, "Request Body", note))
            self.console.print(self._block(format_body(req.body), style, key))

    def _print_response(self, result: InterceptionResult, style: str) -> None:
        cfg = self.config
        key = result.session_key

        if result.failed:
            heading = self._heading(style, key, "", response=True)
            heading.append("✗ Error: ", style="bold red")
            heading.append(result.error or "")
            self.console.print(heading)
            return

        heading = self._heading(style, key, "✓ Received:", response=True)
        heading.append(f" {result.status} {result.status_text} ({int(result.duration_ms)}ms)")
        self.console.print(heading)

        if not cfg.show_response:
            return

        if cfg.show_headers:
            if result.response_header_diff is not None:
                self.console.print(self._heading(style, key, "Headers", " - Showing diff:", response=True))
                if result.response_header_diff:
                    self.console.print(format_diff(result.response_header_diff, style))
                else:
                    self.console.print(self._block("  No response header changes", style, key, response=True))
            else:
                self.console.print(self._heading(style, key, "Headers:", response=True))
                self.console.print(self._block(format_headers(result.headers), style, key, response=True))

        if not result.content and result.normalized is None:
            return
        if result.is_sse:
            self.console.print(self._heading(style, key, "Body", " (SSE stream):", response=True))
        else:
            self.console.print(self._heading(style, key, "Body:", response=True))
        self.console.print(self._block(format_body(result.normalized), style, key, response=True))
