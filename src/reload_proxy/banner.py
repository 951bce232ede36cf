"""Startup banner — where to point the browser, and what is being watched.

Printed to stderr once both listeners are up.  Detects ``NO_COLOR`` /
``TERM`` for safe fallback; stdout is left to the lifecycle notices.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reload_proxy.config import ProxyConfig


# ---------------------------------------------------------------------------
# ANSI helpers — respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""


def _clickable_url(url: str) -> str:
    """Wrap *url* in an OSC 8 hyperlink escape if the terminal supports it."""
    if not _COLOR:
        return url
    return f"\033]8;;{url}\033\\{_BOLD}{_CYAN}{url}{_RESET}\033]8;;\033\\"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(
    config: ProxyConfig,
    *,
    load_ms: float = 0.0,
) -> None:
    """Print the reload-proxy startup banner to stderr.

    Args:
        config: Resolved ProxyConfig.
        load_ms: Time spent starting both listeners in milliseconds.

    """
    from reload_proxy import __version__

    timing = f"  {_DIM}ready in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines: list[str] = [
        "",
        f"  {_BOLD}reload-proxy{_RESET} {_DIM}v{__version__}{_RESET}{timing}",
        f"  {_DIM}{'─' * 43}{_RESET}",
        f"  {_DIM}├─{_RESET} upstream: {config.upstream_url}",
        f"  {_DIM}├─{_RESET} {_GREEN}live{_RESET} "
        f"— SSE on {_DIM}{config.livereload_url}{_RESET} (origin {config.origin})",
    ]

    retries = "off" if config.max_retries == 0 else (
        f"{config.max_retries} x {config.retry_delay}ms"
    )
    lines.append(f"  {_DIM}├─{_RESET} retries: {retries}")
    lines.append(f"  {_DIM}└─{_RESET} watching: {_DIM}{config.watch_path}{_RESET}")

    lines.append("")
    lines.append(f"  {_clickable_url(config.proxy_url)}")

    lines.append("")

    print("\n".join(lines), file=sys.stderr)
