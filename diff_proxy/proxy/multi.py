"""Multi-instance proxy: spawn N uvicorn listeners, one per configured proxy."""

from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI

from ..render import ConsoleReporter
from ..storage.request_log import RequestLogger
from ..types import DiffProxyConfig, InterceptionReporter, ProxyInstanceConfig
from .server import create_app

logger = logging.getLogger(__name__)


def build_app(
    instance: ProxyInstanceConfig,
    reporter: InterceptionReporter | None = None,
    request_logger: RequestLogger | None = None,
) -> FastAPI:
    """Create the app for one configured proxy instance."""
    return create_app(
        upstream=instance.target,
        session_key_field=instance.session_key_field,
        history_field=instance.history_field,
        reporter=reporter,
        request_logger=request_logger,
        instance_label=instance.name,
    )


async def run_multi_instance(config: DiffProxyConfig) -> None:
    """Start one uvicorn server per configured proxy and serve until stopped.

    All instances share the console reporter (so the color rotation spans
    every listener) and the request logger.  Each keeps its own session
    cache.
    """
    reporter = ConsoleReporter(config.logging)
    request_logger = RequestLogger(config.request_log.dir, config.request_log.max_files)

    servers: list[uvicorn.Server] = []
    for inst in config.proxies:
        app = build_app(inst, reporter=reporter, request_logger=request_logger)
        server_config = uvicorn.Config(
            app,
            host=inst.host,
            port=inst.port,
            log_level="warning",
            timeout_graceful_shutdown=2,
        )
        servers.append(uvicorn.Server(server_config))
        label = inst.name or inst.target
        print(f"  [{label}] {inst.host}:{inst.port} -> {inst.target}", flush=True)

    print(f"Starting {len(servers)} proxy instance(s)...", flush=True)
    await asyncio.gather(*(s.serve() for s in servers))
