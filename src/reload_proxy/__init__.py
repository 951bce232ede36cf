"""reload-proxy — live-reload any web app from the outside.

Sits in front of a development server, forwards every request to it, and
appends a small script to HTML pages that reloads them whenever a file in
the watched directory changes.  The upstream needs no changes; its
Content-Security-Policy and Content-Length are adjusted on the way through.

Quick start::

    import reload_proxy

    config = reload_proxy.load_config()   # UPSTREAM_HOST, PROXY_PORT, ...
    reload_proxy.run(config)              # blocks until SIGTERM/SIGINT

Two listeners share one event loop::

    PROXY_PORT        forwarding proxy (browse here)
    LIVERELOAD_PORT   Server-Sent Events stream the injected script listens to

"""

__version__ = "0.1.0"
__all__ = [
    "ProxyConfig",
    "ReloadProxy",
    "__version__",
    "load_config",
    "run",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import reload_proxy`` fast (no aiohttp/watchfiles import) while
    providing a clean top-level API.
    """
    if name == "ProxyConfig":
        from reload_proxy.config import ProxyConfig

        return ProxyConfig

    if name == "load_config":
        from reload_proxy.config_loader import load_config

        return load_config

    if name == "ReloadProxy":
        from reload_proxy.app import ReloadProxy

        return ReloadProxy

    if name == "run":
        from reload_proxy.app import run

        return run

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
