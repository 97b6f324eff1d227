"""Pure helper functions for the proxy server: header and query handling."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

_HOP_BY_HOP = frozenset({
    "host", "connection", "transfer-encoding", "keep-alive",
    "proxy-authenticate", "proxy-authorization", "te", "trailers",
    "upgrade", "content-length",
})

# httpx hands back decoded bodies, so the upstream encoding no longer applies
_RESPONSE_DROP = _HOP_BY_HOP | {"content-encoding"}


def _forward_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Strip hop-by-hop headers (host, content-length, ...) before forwarding."""
    return {k: v for k, v in headers.items() if k.lower() not in _HOP_BY_HOP}


def _client_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Upstream response headers safe to replay on the client response."""
    return {k: v for k, v in headers.items() if k.lower() not in _RESPONSE_DROP}


def _query_dict(items: Iterable[tuple[str, str]]) -> dict[str, str | list[str]]:
    """Collapse query items into a dict; repeated keys become lists."""
    query: dict[str, str | list[str]] = {}
    for key, value in items:
        if key not in query:
            query[key] = value
        else:
            existing = query[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                query[key] = [existing, value]
    return query
