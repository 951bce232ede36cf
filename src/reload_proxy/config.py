"""reload-proxy configuration.

ProxyConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    """Configuration for a reload-proxy process.

    Attributes:
        upstream_host: Host name of the server requests are forwarded to.
        upstream_port: Port of the upstream server.
        livereload_port: Port of the notification (SSE) endpoint.
        livereload_delay: Milliseconds the browser waits before reloading.
        proxy_port: Port the forwarding proxy listens on.
        watch_path: Directory watched for changes. Always resolved to an
            absolute path on construction.
        allow_origin: ``Access-Control-Allow-Origin`` sent by the
            notification endpoint (None = the proxy's own origin).
        max_retries: Extra attempts made while the upstream refuses connections.
        retry_delay: Milliseconds to wait between those attempts.
        host: Bind address for both listeners (None = all interfaces).
        debug: Enable the verbose diagnostic channel.

    """

    upstream_host: str
    upstream_port: int
    livereload_port: int
    livereload_delay: int
    proxy_port: int
    watch_path: Path
    allow_origin: str | None = None
    max_retries: int = 5
    retry_delay: int = 200
    host: str | None = None
    debug: bool = False

    def __post_init__(self) -> None:
        # watchfiles reports absolute paths; keep the root comparable.
        if not self.watch_path.is_absolute():
            object.__setattr__(self, "watch_path", self.watch_path.resolve())

    @property
    def origin(self) -> str:
        """CORS origin allowed to open the notification stream."""
        return self.allow_origin or f"http://localhost:{self.proxy_port}"

    @property
    def upstream_url(self) -> str:
        """Base URL requests are forwarded to."""
        return f"http://{self.upstream_host}:{self.upstream_port}"

    @property
    def proxy_url(self) -> str:
        """URL the browser should open."""
        return f"http://localhost:{self.proxy_port}"

    @property
    def livereload_url(self) -> str:
        """URL of the notification endpoint, as used by the injected script."""
        return f"http://localhost:{self.livereload_port}/"
