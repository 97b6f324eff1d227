"""InterceptionPipeline: classify, forward, normalize, record one request."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from ..types import (
    CacheAnalysis,
    InboundRequest,
    InterceptionReporter,
    InterceptionResult,
    RequestSnapshot,
)
from .cache import SessionCache
from .differ import diff
from .sse import is_sse_response, parse_sse_events, reconstruct_message

if TYPE_CHECKING:
    from ..storage.request_log import RequestLogger

logger = logging.getLogger(__name__)

FAILURE_STATUS = 500


def _decode_body(body: bytes) -> tuple[Any, bool]:
    """Return ``(value, is_json)`` for a raw request body."""
    if not body:
        return None, False
    try:
        return json.loads(body), True
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace"), False


def _display_url(path: str, query: dict[str, Any]) -> str:
    if not query:
        return path
    return f"{path}?{urlencode(query, doseq=True)}"


def _normalize_response(response: httpx.Response) -> tuple[Any, bool]:
    """Return ``(normalized_body, is_sse)`` for diagnostics."""
    if is_sse_response(response.headers):
        text = response.text
        message = reconstruct_message(parse_sse_events(text))
        return (message if message is not None else text), True
    if not response.content:
        return None, False
    try:
        return response.json(), False
    except ValueError:
        return response.text, False


class InterceptionPipeline:
    """Runs one inbound request through the cache, the upstream and the reporters.

    The bytes returned to the caller are the upstream's, untouched; the
    normalized body and diffs exist only for reporting and persistence.
    """

    def __init__(
        self,
        upstream: str,
        client: httpx.AsyncClient,
        cache: SessionCache | None = None,
        *,
        session_key_field: str = "model",
        history_field: str = "messages",
        reporter: InterceptionReporter | None = None,
        request_logger: RequestLogger | None = None,
    ) -> None:
        self.upstream = upstream.rstrip("/")
        self.client = client
        self.cache = cache if cache is not None else SessionCache(history_field=history_field)
        self.session_key_field = session_key_field
        self.reporter = reporter
        self.request_logger = request_logger

    def extract_session_key(self, body: Any) -> str | None:
        """Session key from a parsed body, or None when the request is stateless."""
        if not isinstance(body, dict):
            return None
        value = body.get(self.session_key_field)
        if not value:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, sort_keys=True)

    def target_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.upstream}{path}"

    async def handle(self, request: InboundRequest) -> InterceptionResult:
        body, is_json = _decode_body(request.body)
        key = self.extract_session_key(body) if is_json else None
        snapshot = RequestSnapshot(
            method=request.method,
            url=_display_url(request.path, request.query),
            headers=dict(request.headers),
            query=dict(request.query),
            body=body,
            session_key=key,
        )
        url = self.target_url(request.path)

        analysis: CacheAnalysis | None = None
        if key is not None:
            analysis = self.cache.record_request(
                key, body, request.headers, reseed_on_bust=True,
            )

        started = time.monotonic()
        try:
            response = await self.client.request(
                request.method,
                url,
                params=request.query or None,
                headers=request.headers,
                content=request.body,
            )
        except asyncio.CancelledError:
            if key is not None and analysis is not None:
                self.cache.rollback(key, analysis)
                logger.info("Request for %s cancelled, cache update rolled back", key)
            raise
        except httpx.HTTPError as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("Upstream request %s %s failed: %s", request.method, url, message)
            result = InterceptionResult(
                request=snapshot,
                target_url=url,
                status=FAILURE_STATUS,
                status_text="Error",
                normalized={"error": "Proxy Error", "message": message, "target": url},
                analysis=analysis,
                error=message,
            )
            await self._post_process(result)
            return result

        duration_ms = round((time.monotonic() - started) * 1000, 1)
        try:
            normalized, is_sse = _normalize_response(response)
        except Exception:
            logger.exception("Could not normalize response body from %s", url)
            normalized, is_sse = response.text, is_sse_response(response.headers)
        response_headers = dict(response.headers)

        response_header_diff = None
        if key is not None:
            previous = self.cache.record_response_headers(key, response_headers)
            if previous is not None:
                response_header_diff = diff(previous, response_headers)

        usage = normalized.get("usage") if isinstance(normalized, dict) else None
        result = InterceptionResult(
            request=snapshot,
            target_url=url,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=response_headers,
            content=response.content,
            normalized=normalized,
            usage=usage if isinstance(usage, dict) else None,
            duration_ms=duration_ms,
            analysis=analysis,
            response_header_diff=response_header_diff,
            is_sse=is_sse,
        )
        await self._post_process(result)
        return result

    async def _post_process(self, result: InterceptionResult) -> None:
        """Report and persist a finished request; never raises."""
        if self.reporter is not None:
            try:
                self.reporter.report(result)
            except Exception:
                logger.exception("Reporter failed for %s %s", result.request.method, result.request.url)
        if self.request_logger is not None and getattr(self.request_logger, "enabled", False):
            try:
                await asyncio.to_thread(
                    self.request_logger.save, result.request, result.response_snapshot(),
                )
            except Exception:
                logger.exception("Request logger failed for %s %s", result.request.method, result.request.url)
