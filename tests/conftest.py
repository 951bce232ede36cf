"""Shared test fixtures for reload-proxy."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from reload_proxy.config import ProxyConfig
from reload_proxy.livereload.script import InjectedScript

# Upstream handler signature used by the end-to-end proxy tests.
type UpstreamHandler = Callable[[web.Request], Awaitable[web.StreamResponse]]

HTML = b"<html><body>Hello, world!</body></html>"

# Fingerprint of the script rendered for port 9082 with a 0 ms delay.
REFERENCE_FINGERPRINT = "dRzwlBsTdt31jik2aQY6AdmBBL8Fj0b/UoxTxHlLAJQ="


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    """An empty directory to watch."""
    path = tmp_path / "watched"
    path.mkdir()
    return path


@pytest.fixture
def make_config(watch_dir: Path) -> Callable[..., ProxyConfig]:
    """Factory for ProxyConfig with fast retries and free ports.

    Keyword arguments override any field.
    """

    def factory(**overrides: Any) -> ProxyConfig:
        values: dict[str, Any] = {
            "upstream_host": "127.0.0.1",
            "upstream_port": unused_port(),
            "livereload_port": 9082,
            "livereload_delay": 0,
            "proxy_port": unused_port(),
            "watch_path": watch_dir,
            "max_retries": 2,
            "retry_delay": 1,
        }
        values.update(overrides)
        return ProxyConfig(**values)

    return factory


@pytest.fixture
def script() -> InjectedScript:
    """The reload script for the reference port and delay."""
    return InjectedScript.build(9082, 0)


def upstream_app(handler: UpstreamHandler) -> web.Application:
    """An aiohttp app answering every request with *handler*."""
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    return app


async def start_upstream(handler: UpstreamHandler) -> TestServer:
    """Start a local upstream server; the caller closes it."""
    server = TestServer(upstream_app(handler), host="127.0.0.1")
    await server.start_server()
    return server
