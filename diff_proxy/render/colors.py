"""Per-request color rotation for console output."""

from __future__ import annotations

import threading

DEFAULT_ROTATION = (
    "cyan",
    "green",
    "yellow",
    "magenta",
    "blue",
    "bright_red",
    "bright_green",
    "bright_yellow",
    "bright_cyan",
    "bright_magenta",
)


class ColorRotation:
    """Hands out the next style name on each call, wrapping around."""

    def __init__(self, styles: tuple[str, ...] = DEFAULT_ROTATION) -> None:
        if not styles:
            raise ValueError("ColorRotation needs at least one style")
        self._styles = styles
        self._index = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            style = self._styles[self._index]
            self._index = (self._index + 1) % len(self._styles)
            return style
