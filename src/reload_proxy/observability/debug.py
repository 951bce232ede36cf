"""Verbose diagnostic channel.

Off by default.  Enabled with ``RELOAD_PROXY_DEBUG=1`` in the environment
or ``--debug`` on the command line; messages go to stderr, one line each,
tagged with the section that emitted them.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_enabled: bool | None = None


def debug_enabled() -> bool:
    """Whether debug output is on (environment checked on first use)."""
    global _enabled  # noqa: PLW0603
    if _enabled is None:
        _enabled = os.environ.get("RELOAD_PROXY_DEBUG", "").strip().lower() in _TRUTHY
    return _enabled


def set_debug(enabled: bool) -> None:
    """Force the channel on or off, overriding the environment."""
    global _enabled  # noqa: PLW0603
    _enabled = enabled


def debuglog(section: str) -> Callable[[str], None]:
    """Return a logger that prints ``[section] message`` while debug is on."""

    def log(message: str) -> None:
        if debug_enabled():
            print(f"  [{section}] {message}", file=sys.stderr)

    return log
