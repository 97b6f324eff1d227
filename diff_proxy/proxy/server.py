"""HTTP proxy server for diff-proxy.

Sits between an LLM client and its upstream provider, forwarding every
request unchanged while the interception pipeline diffs successive
requests of the same session and reconstructs streamed responses for
the console and the request log.

Usage:
    diff-proxy -c config.yaml proxy --target https://api.anthropic.com
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ..core.cache import SessionCache
from ..core.pipeline import InterceptionPipeline
from ..storage.request_log import RequestLogger
from ..types import InboundRequest, InterceptionReporter
from .helpers import _client_headers, _forward_headers, _query_dict

logger = logging.getLogger(__name__)

DISCONNECT_POLL_INTERVAL = 0.1

_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


async def _wait_for_disconnect(request: Request) -> None:
    """Return once the client has gone away."""
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


def create_app(
    upstream: str,
    *,
    session_key_field: str = "model",
    history_field: str = "messages",
    cache: SessionCache | None = None,
    reporter: InterceptionReporter | None = None,
    request_logger: RequestLogger | None = None,
    client: httpx.AsyncClient | None = None,
    instance_label: str = "",
) -> FastAPI:
    """Create the FastAPI proxy application.

    Args:
        upstream: Upstream base URL (e.g. https://api.anthropic.com).
        session_key_field: Body field whose value keys the session cache.
        history_field: Body list whose shrinking signals a new conversation.
        cache: Session cache to use; a fresh one is created if None.
        reporter: Receives every finished request (console output).
        request_logger: Persists request/response pairs when enabled.
        client: httpx client for upstream calls; created (and closed on
            shutdown) if None.
        instance_label: Human-readable label for this instance.
    """
    upstream = upstream.rstrip("/")
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(600.0, connect=10.0),
            follow_redirects=True,
            max_redirects=5,
        )
    if cache is None:
        cache = SessionCache(history_field=history_field)

    pipeline = InterceptionPipeline(
        upstream,
        client,
        cache,
        session_key_field=session_key_field,
        history_field=history_field,
        reporter=reporter,
        request_logger=request_logger,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        yield
        if owns_client:
            await client.aclose()

    _app_title = "diff-proxy"
    if instance_label:
        _app_title += f" [{instance_label}]"
    app = FastAPI(title=_app_title, lifespan=lifespan)
    app.state.instance_label = instance_label
    app.state.pipeline = pipeline
    app.state.cache = cache

    @app.api_route("/{path:path}", methods=_METHODS)
    async def catch_all(request: Request, path: str):
        inbound = InboundRequest(
            method=request.method,
            path="/" + path,
            query=_query_dict(request.query_params.multi_items()),
            headers=_forward_headers(dict(request.headers)),
            body=await request.body(),
        )
        handle_task = asyncio.ensure_future(pipeline.handle(inbound))
        watch_task = asyncio.ensure_future(_wait_for_disconnect(request))
        try:
            await asyncio.wait({handle_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            # Also reached when the route itself is cancelled
            for task in (handle_task, watch_task):
                if not task.done():
                    task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watch_task

        if not handle_task.done() or handle_task.cancelled():
            with contextlib.suppress(asyncio.CancelledError):
                await handle_task
            logger.info("Client disconnected during %s %s", inbound.method, inbound.path)
            return Response(status_code=499)
        result = handle_task.result()

        if result.failed:
            return JSONResponse(content=result.normalized, status_code=result.status)
        return Response(
            content=result.content,
            status_code=result.status,
            headers=_client_headers(result.headers),
        )

    logger.info(
        "Proxy ready: -> %s (session key: %s)%s",
        upstream,
        session_key_field,
        f", label={instance_label}" if instance_label else "",
    )
    return app
