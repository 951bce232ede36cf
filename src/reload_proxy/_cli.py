"""reload-proxy CLI.

Entry point for the ``reload-proxy`` command.  Every option falls back to
its environment variable; options given on the command line win.
"""

from __future__ import annotations

import argparse
import sys


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the reload-proxy CLI."""
    parser = argparse.ArgumentParser(
        prog="reload-proxy",
        description=(
            "HTTP proxy that injects a live-reload script into HTML pages "
            "and reloads them when watched files change."
        ),
        epilog=(
            "Options default to UPSTREAM_HOST, UPSTREAM_PORT, PROXY_PORT, "
            "LIVERELOAD_PORT, LIVERELOAD_DELAY, WATCH_PATH, "
            "ACCESS_CONTROL_ALLOW_ORIGIN, UPSTREAM_MAX_RETRIES, "
            "UPSTREAM_RETRY_DELAY and RELOAD_PROXY_DEBUG."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: all interfaces)")
    parser.add_argument("--upstream-host", default=None, help="Upstream server host")
    parser.add_argument("--upstream-port", default=None, help="Upstream server port")
    parser.add_argument("--proxy-port", default=None, help="Port the proxy listens on")
    parser.add_argument(
        "--livereload-port", default=None, help="Port of the live-reload event stream",
    )
    parser.add_argument(
        "--livereload-delay", default=None, help="Milliseconds to wait before reloading",
    )
    parser.add_argument("--watch", dest="watch_path", default=None, help="Directory to watch")
    parser.add_argument(
        "--allow-origin", default=None, help="CORS origin allowed on the event stream",
    )
    parser.add_argument(
        "--max-retries", default=None, help="Retries while the upstream refuses connections",
    )
    parser.add_argument(
        "--retry-delay", default=None, help="Milliseconds between those retries",
    )
    parser.add_argument(
        "--debug", action="store_true", default=None, help="Print verbose diagnostics",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from reload_proxy import __version__

    return __version__


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    """Map parsed options onto ProxyConfig field names."""
    return {
        "host": args.host,
        "upstream_host": args.upstream_host,
        "upstream_port": args.upstream_port,
        "proxy_port": args.proxy_port,
        "livereload_port": args.livereload_port,
        "livereload_delay": args.livereload_delay,
        "watch_path": args.watch_path,
        "allow_origin": args.allow_origin,
        "max_retries": args.max_retries,
        "retry_delay": args.retry_delay,
        "debug": args.debug,
    }


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from reload_proxy._errors import ConfigError
    from reload_proxy.config_loader import load_config

    try:
        config = load_config(**_overrides(args))
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if config.debug:
        from reload_proxy.observability.debug import set_debug

        set_debug(True)

    from reload_proxy.app import run

    run(config)
    sys.exit(0)


if __name__ == "__main__":
    main()
