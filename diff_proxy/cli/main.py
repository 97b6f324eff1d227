"""CLI: diff-proxy proxy, config validate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ..config import load_config, validate_config
from ..types import DiffProxyConfig, ProxyInstanceConfig


class _SuppressCancelled(logging.Filter):
    """Drop CancelledError tracebacks uvicorn logs when it force-closes on shutdown."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.exc_info:
            exc_type = record.exc_info[0]
            if exc_type is asyncio.CancelledError:
                return False
        return True


# Flags that only describe the listener created by --target
_TARGET_ONLY_FLAGS = (
    ("port", "--port"),
    ("host", "--host"),
    ("session_key_field", "--session-key-field"),
)


def _target_only_flags(args) -> list[str]:
    """Listener flags given without --target (they would have no effect)."""
    if args.target:
        return []
    return [flag for dest, flag in _TARGET_ONLY_FLAGS if getattr(args, dest) is not None]


def _apply_overrides(config: DiffProxyConfig, args) -> DiffProxyConfig:
    """Fold CLI flags into the loaded config.

    ``--target`` replaces the configured proxies with a single listener.
    """
    if args.target:
        config.proxies = [ProxyInstanceConfig(
            target=args.target.rstrip("/"),
            port=args.port if args.port is not None else 8080,
            host=args.host or "127.0.0.1",
            name="cli",
            session_key_field=args.session_key_field or "model",
        )]
    if args.log_dir:
        config.request_log.dir = args.log_dir
    if args.compact:
        config.logging.compact = True
    return config


def cmd_proxy(args):
    """Start the diff proxy listeners."""
    from ..proxy.multi import run_multi_instance

    logging.getLogger("uvicorn.error").addFilter(_SuppressCancelled())

    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    ignored = _target_only_flags(args)
    if ignored:
        print(
            f"Error: {', '.join(ignored)} only apply together with --target; "
            "configure listeners in the proxies section instead",
            file=sys.stderr,
        )
        sys.exit(1)

    config = _apply_overrides(config, args)
    errors = validate_config(config)
    if errors:
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("Error: invalid configuration (pass --target or configure proxies)", file=sys.stderr)
        sys.exit(1)

    print(f"diff-proxy ({len(config.proxies)} listener(s)):")
    for inst in config.proxies:
        print(f"  run your client with ANTHROPIC_BASE_URL=http://localhost:{inst.port}")
    try:
        asyncio.run(run_multi_instance(config))
    except KeyboardInterrupt:
        print("\nShutting down proxy servers...")


def cmd_config_validate(args):
    """Validate the configuration file."""
    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)

    print(f"Config OK ({len(config.proxies)} proxies)")
    for inst in config.proxies:
        label = inst.name or inst.target
        print(f"  [{label}] {inst.host}:{inst.port} -> {inst.target} (key: {inst.session_key_field})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diff-proxy",
        description="Transparent LLM API proxy that diffs successive requests per session",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # proxy
    proxy_parser = subparsers.add_parser("proxy", help="Start the proxy")
    proxy_parser.add_argument(
        "--target", "-t",
        help="Upstream base URL (overrides the proxies section of the config)",
    )
    proxy_parser.add_argument(
        "--port", "-p", type=int,
        help="Listen port for --target (default: 8080; requires --target)",
    )
    proxy_parser.add_argument(
        "--host",
        help="Listen address for --target (default: 127.0.0.1; requires --target)",
    )
    proxy_parser.add_argument(
        "--session-key-field",
        help="Body field used as the session key (default: model; requires --target)",
    )
    proxy_parser.add_argument("--log-dir", help="Save request/response pairs to this directory")
    proxy_parser.add_argument("--compact", action="store_true", help="One line per request")

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "proxy":
        cmd_proxy(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: diff-proxy config validate")
            sys.exit(1)


if __name__ == "__main__":
    main()
