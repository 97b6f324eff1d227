"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from .types import (
    DiffProxyConfig,
    LoggingConfig,
    ProxyInstanceConfig,
    RequestLogConfig,
)

CONFIG_ENV_VAR = "DIFF_PROXY_CONFIG"

CONFIG_FILENAMES = [
    "diff-proxy.yaml",
    "diff-proxy.yml",
    "diff-proxy.json",
    "config.yaml",
]


def _discover_config() -> Path | None:
    """$DIFF_PROXY_CONFIG, else search CWD then parent dirs up to home."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _parse_proxy(raw: dict[str, Any]) -> ProxyInstanceConfig:
    return ProxyInstanceConfig(
        target=str(raw.get("target", "")).rstrip("/"),
        port=int(raw.get("port", 8080)),
        name=raw.get("name", ""),
        host=raw.get("host", "127.0.0.1"),
        session_key_field=raw.get("session_key_field", "model"),
        history_field=raw.get("history_field", "messages"),
    )


def _build_config(raw: dict[str, Any]) -> DiffProxyConfig:
    """Build a DiffProxyConfig from a raw dict."""
    if not isinstance(raw, dict):
        raise ValueError(f"config must be a mapping, got {type(raw).__name__}")
    for section in ("logging", "request_log"):
        if raw.get(section) is not None and not isinstance(raw[section], dict):
            raise ValueError(f"'{section}' must be a mapping")
    proxies_raw = raw.get("proxies") or []
    if not isinstance(proxies_raw, list):
        raise ValueError("'proxies' must be a list")
    proxies = [_parse_proxy(p if isinstance(p, dict) else {}) for p in proxies_raw]

    log_raw = raw.get("logging") or {}
    logging_config = LoggingConfig(
        show_headers=log_raw.get("show_headers", True),
        show_body=log_raw.get("show_body", True),
        show_query=log_raw.get("show_query", True),
        show_response=log_raw.get("show_response", True),
        compact=log_raw.get("compact", False),
        use_color_tag=log_raw.get("use_color_tag", True),
    )

    req_log_raw = raw.get("request_log") or {}
    request_log = RequestLogConfig(
        dir=req_log_raw.get("dir"),
        max_files=int(req_log_raw.get("max_files", 0)),
    )

    return DiffProxyConfig(
        proxies=proxies,
        logging=logging_config,
        request_log=request_log,
    )


def validate_config(config: DiffProxyConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if not config.proxies:
        errors.append("At least one proxy must be configured")

    seen_ports: set[tuple[str, int]] = set()
    for i, proxy in enumerate(config.proxies):
        label = proxy.name or f"proxies[{i}]"
        if not proxy.target:
            errors.append(f"{label}: target is required")
        elif not proxy.target.startswith(("http://", "https://")):
            errors.append(f"{label}: target must be an http(s) URL, got '{proxy.target}'")
        if not 0 < proxy.port < 65536:
            errors.append(f"{label}: port {proxy.port} out of range")
        if (proxy.host, proxy.port) in seen_ports:
            errors.append(f"{label}: {proxy.host}:{proxy.port} is already used by another proxy")
        seen_ports.add((proxy.host, proxy.port))
        if not proxy.session_key_field:
            errors.append(f"{label}: session_key_field must not be empty")

    if config.request_log.max_files < 0:
        errors.append("request_log.max_files must be >= 0")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> DiffProxyConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    return _build_config(raw)
