"""diff-proxy: transparent LLM API proxy that diffs successive requests per session."""

from .config import load_config
from .core import SessionCache, diff, parse_sse_events, reconstruct_message
from .types import (
    CacheAnalysis,
    CacheEntry,
    CacheStatus,
    DiffKind,
    DiffProxyConfig,
    DiffRecord,
    SSEEvent,
)

__version__ = "0.1.0"

__all__ = [
    "SessionCache",
    "diff",
    "parse_sse_events",
    "reconstruct_message",
    "load_config",
    "CacheAnalysis",
    "CacheEntry",
    "CacheStatus",
    "DiffKind",
    "DiffProxyConfig",
    "DiffRecord",
    "SSEEvent",
]
