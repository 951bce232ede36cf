"""reload-proxy error hierarchy.

All reload-proxy errors inherit from ReloadProxyError for easy catching.
Upstream errors carry the HTTP status the proxy answers with when nothing
has been sent downstream yet.
"""


class ReloadProxyError(Exception):
    """Base error for all reload-proxy operations."""


class ConfigError(ReloadProxyError):
    """Invalid or missing configuration."""


class UpstreamError(ReloadProxyError):
    """The upstream request failed at the transport layer."""

    status = 500


class UpstreamRefused(UpstreamError):
    """The upstream refused the connection (nothing is listening)."""

    status = 502


class UpstreamUnreachable(UpstreamRefused):
    """The upstream kept refusing connections until the retry budget ran out."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


def status_for_error(exc: BaseException) -> int:
    """HTTP status sent downstream for a request that failed with *exc*."""
    if isinstance(exc, UpstreamError):
        return exc.status
    return 500
