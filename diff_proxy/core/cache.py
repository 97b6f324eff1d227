"""SessionCache: last-seen request per session key, with cache-bust detection."""

from __future__ import annotations

import logging
import threading
from typing import Any

from ..types import CacheAnalysis, CacheEntry, CacheStatus
from .differ import diff

logger = logging.getLogger(__name__)


def _history_length(body: Any, history_field: str) -> int:
    if isinstance(body, dict):
        history = body.get(history_field)
        if isinstance(history, list):
            return len(history)
    return 0


class SessionCache:
    """Keyed store of the last request body/headers and response headers.

    One instance is owned by each proxy app.  Every public method runs as
    a single critical section under one lock, so classifying a request
    and replacing the cached baseline cannot interleave with another
    request for the same key.
    """

    def __init__(self, history_field: str = "messages") -> None:
        self.history_field = history_field
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def evict(self, key: str) -> bool:
        """Drop the entry for *key*.  Returns True if one existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def record_request(
        self,
        key: str,
        body: Any,
        request_headers: dict[str, str],
        *,
        reseed_on_bust: bool = False,
    ) -> CacheAnalysis:
        """Classify a request against the cached baseline and update it.

        - shorter history than the cached body: the entry is evicted and
          ``cache-busted`` is returned without diffs.  With
          *reseed_on_bust* the request is stored as a fresh baseline.
        - no entry: the request is stored, ``first-request``.
        - otherwise body and header diffs are computed against the cached
          values, which are then replaced (response headers are kept).
        """
        headers = dict(request_headers)
        with self._lock:
            cached = self._entries.get(key)

            if cached is None:
                entry = CacheEntry(body=body, request_headers=headers)
                self._entries[key] = entry
                return CacheAnalysis(
                    CacheStatus.FIRST_REQUEST, previous=None, current=entry,
                )

            current_len = _history_length(body, self.history_field)
            cached_len = _history_length(cached.body, self.history_field)
            if current_len < cached_len:
                del self._entries[key]
                entry = None
                if reseed_on_bust:
                    entry = CacheEntry(body=body, request_headers=headers)
                    self._entries[key] = entry
                logger.info(
                    "Cache busted for %s: %s shrank %d -> %d",
                    key, self.history_field, cached_len, current_len,
                )
                return CacheAnalysis(
                    CacheStatus.CACHE_BUSTED, previous=cached, current=entry,
                )

            body_diff = diff(cached.body, body)
            header_diff = diff(cached.request_headers, headers)
            entry = CacheEntry(
                body=body,
                request_headers=headers,
                response_headers=cached.response_headers,
            )
            self._entries[key] = entry
            return CacheAnalysis(
                CacheStatus.DIFFED,
                body_diff=body_diff,
                header_diff=header_diff,
                previous=cached,
                current=entry,
            )

    def record_response_headers(
        self, key: str, response_headers: dict[str, str],
    ) -> dict[str, str] | None:
        """Overwrite the entry's response headers; no-op without an entry.

        Returns the response headers that were cached before the call.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            previous = entry.response_headers
            entry.response_headers = dict(response_headers)
            return previous

    def rollback(self, key: str, analysis: CacheAnalysis) -> bool:
        """Undo the update made by :meth:`record_request`.

        Only applies while the key still holds what that call left behind;
        if another request has replaced it since, nothing changes.
        """
        with self._lock:
            if self._entries.get(key) is not analysis.current:
                return False
            if analysis.previous is None:
                self._entries.pop(key, None)
            else:
                self._entries[key] = analysis.previous
            return True
