"""All dataclasses and type aliases for diff-proxy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union, runtime_checkable

PathSegment = Union[str, int]


# ---------------------------------------------------------------------------
# Structural diff
# ---------------------------------------------------------------------------

class DiffKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    EDITED = "edited"
    ARRAY = "array"  # element change inside a list; see DiffRecord.item


_MISSING: Any = object()


@dataclass
class DiffRecord:
    """One structural change between a baseline and a candidate value.

    ``old`` is set for REMOVED/EDITED, ``new`` for ADDED/EDITED.  ARRAY
    records carry the element ``index`` and a nested ``item`` record
    (ADDED, REMOVED or EDITED) whose path is ``path + [index]``.
    """
    kind: DiffKind
    path: list[PathSegment] = field(default_factory=list)
    old: Any = _MISSING
    new: Any = _MISSING
    index: int | None = None
    item: DiffRecord | None = None

    @property
    def location(self) -> list[PathSegment]:
        """Full path of the changed value (includes the index for ARRAY)."""
        if self.kind is DiffKind.ARRAY and self.index is not None:
            return [*self.path, self.index]
        return list(self.path)

    @property
    def has_old(self) -> bool:
        return self.old is not _MISSING

    @property
    def has_new(self) -> bool:
        return self.new is not _MISSING

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"kind": self.kind.value, "path": list(self.path)}
        if self.has_old:
            d["old"] = self.old
        if self.has_new:
            d["new"] = self.new
        if self.kind is DiffKind.ARRAY:
            d["index"] = self.index
            d["item"] = self.item.to_dict() if self.item else None
        return d


# ---------------------------------------------------------------------------
# Session cache
# ---------------------------------------------------------------------------

class CacheStatus(str, Enum):
    FIRST_REQUEST = "first-request"
    CACHE_BUSTED = "cache-busted"
    DIFFED = "diffed"


@dataclass
class CacheEntry:
    body: Any
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] | None = None


@dataclass
class CacheAnalysis:
    """Classification of one request against the session cache."""
    status: CacheStatus
    body_diff: list[DiffRecord] | None = None
    header_diff: list[DiffRecord] | None = None
    # Entry before/after the update, used to undo a cancelled request
    previous: CacheEntry | None = field(default=None, repr=False, compare=False)
    current: CacheEntry | None = field(default=None, repr=False, compare=False)

    @property
    def has_diff(self) -> bool:
        return bool(self.body_diff)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "body_diff": [d.to_dict() for d in self.body_diff] if self.body_diff is not None else None,
            "header_diff": [d.to_dict() for d in self.header_diff] if self.header_diff is not None else None,
        }


# ---------------------------------------------------------------------------
# SSE
# ---------------------------------------------------------------------------

@dataclass
class SSEEvent:
    event: str
    data: Any = None  # parsed JSON, raw string, or None


# ---------------------------------------------------------------------------
# Interception
# ---------------------------------------------------------------------------

@dataclass
class InboundRequest:
    """One request as handed over by the transport layer."""
    method: str
    path: str
    query: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)  # host/content-length stripped
    body: bytes = b""


@dataclass
class RequestSnapshot:
    method: str
    url: str
    headers: dict[str, str]
    query: dict[str, Any]
    body: Any
    session_key: str | None = None

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "url": self.url,
            "headers": self.headers,
            "query": self.query,
            "body": self.body,
            "session_key": self.session_key,
        }


@dataclass
class ResponseSnapshot:
    status: int
    status_text: str
    headers: dict[str, str]
    data: Any
    duration_ms: float
    error: str | None = None

    def to_dict(self) -> dict:
        d = {
            "status": self.status,
            "status_text": self.status_text,
            "headers": self.headers,
            "data": self.data,
            "duration_ms": self.duration_ms,
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class InterceptionResult:
    """Everything the pipeline learned about one proxied request."""
    request: RequestSnapshot
    target_url: str
    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    normalized: Any = None
    usage: dict | None = None
    duration_ms: float = 0.0
    analysis: CacheAnalysis | None = None
    response_header_diff: list[DiffRecord] | None = None
    is_sse: bool = False
    error: str | None = None

    @property
    def session_key(self) -> str | None:
        return self.request.session_key

    @property
    def failed(self) -> bool:
        return self.error is not None

    def response_snapshot(self) -> ResponseSnapshot:
        return ResponseSnapshot(
            status=self.status,
            status_text=self.status_text,
            headers=self.headers,
            data=self.normalized,
            duration_ms=self.duration_ms,
            error=self.error,
        )


@runtime_checkable
class InterceptionReporter(Protocol):
    def report(self, result: InterceptionResult) -> None: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ProxyInstanceConfig:
    """Configuration for a single proxy listener instance."""
    target: str = ""
    port: int = 8080
    name: str = ""
    host: str = "127.0.0.1"
    session_key_field: str = "model"
    history_field: str = "messages"


@dataclass
class LoggingConfig:
    show_headers: bool = True
    show_body: bool = True
    show_query: bool = True
    show_response: bool = True
    compact: bool = False
    use_color_tag: bool = True


@dataclass
class RequestLogConfig:
    dir: str | None = None  # None disables request logging
    max_files: int = 0  # request/response pairs to keep; 0 = unlimited


@dataclass
class DiffProxyConfig:
    proxies: list[ProxyInstanceConfig] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    request_log: RequestLogConfig = field(default_factory=RequestLogConfig)
