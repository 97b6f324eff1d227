from .cache import SessionCache
from .differ import diff, sort_differences
from .pipeline import InterceptionPipeline
from .sse import is_sse_response, parse_sse_events, reconstruct_message

__all__ = [
    "SessionCache",
    "InterceptionPipeline",
    "diff",
    "sort_differences",
    "is_sse_response",
    "parse_sse_events",
    "reconstruct_message",
]
