"""reload-proxy runtime — both listeners, the watcher and the process lifecycle.

ReloadProxy wires the forwarding proxy, the notification endpoint and the
file watcher into one event loop.  ``run()`` is the blocking entry point
used by the CLI: it starts everything, waits for SIGTERM/SIGINT, and shuts
down in order.

Lifecycle notices (one line each on stdout, exactly once, in order)::

    listening   both listeners are bound
    closing     a stop was requested; shutdown begins
    close       both listeners are closed; the process may exit

"""

from __future__ import annotations

import asyncio
import signal
import sys
import threading
import time
from typing import TYPE_CHECKING

from aiohttp import web

from reload_proxy.livereload.broadcaster import BroadcastHub
from reload_proxy.livereload.endpoint import create_livereload_app
from reload_proxy.livereload.script import InjectedScript
from reload_proxy.livereload.watcher import ChangeWatcher
from reload_proxy.observability.collector import ProxyCollector
from reload_proxy.observability.debug import debuglog
from reload_proxy.proxy.forward import create_proxy_app
from reload_proxy.proxy.rewriter import ResponseRewriter

if TYPE_CHECKING:
    from reload_proxy._types import LifecycleState, NotifySink
    from reload_proxy.config import ProxyConfig
    from reload_proxy.livereload.watcher import ChangeEvent


_log = debuglog("lifecycle")

LIFECYCLE_ORDER: tuple[LifecycleState, ...] = ("listening", "closing", "close")

# Seconds in-flight requests get to finish once the listeners are closed.
SHUTDOWN_TIMEOUT = 2.0


def stdout_sink(state: str) -> None:
    """Default lifecycle sink: the notice as one line on stdout."""
    sys.stdout.write(f"{state}\n")
    sys.stdout.flush()


class Lifecycle:
    """Emits each lifecycle notice at most once, never out of order.

    A notice is skipped (and ``emit`` returns False) if it, or a later one,
    was already emitted.  ``closing`` may follow startup directly when the
    process is stopped before it finished listening.

    """

    __slots__ = ("_collector", "_emitted", "_lock", "_sink")

    def __init__(
        self,
        sink: NotifySink | None = None,
        collector: ProxyCollector | None = None,
    ) -> None:
        self._sink = sink or stdout_sink
        self._collector = collector
        self._emitted: list[LifecycleState] = []
        self._lock = threading.Lock()

    @property
    def emitted(self) -> tuple[LifecycleState, ...]:
        with self._lock:
            return tuple(self._emitted)

    def emit(self, state: LifecycleState, detail: str = "") -> bool:
        index = LIFECYCLE_ORDER.index(state)
        with self._lock:
            if self._emitted and LIFECYCLE_ORDER.index(self._emitted[-1]) >= index:
                return False
            self._emitted.append(state)
        if self._collector is not None:
            self._collector.record_lifecycle(state, detail)
        self._sink(state)
        return True


class ReloadProxy:
    """The running system: proxy listener, notification listener and watcher.

    Args:
        config: Resolved ProxyConfig.
        collector: Diagnostics collector (a fresh one by default).
        notify: Receives lifecycle notices (stdout by default).

    """

    def __init__(
        self,
        config: ProxyConfig,
        *,
        collector: ProxyCollector | None = None,
        notify: NotifySink | None = None,
    ) -> None:
        self.config = config
        self.collector = collector if collector is not None else ProxyCollector()
        self.script = InjectedScript.build(config.livereload_port, config.livereload_delay)
        self.hub = BroadcastHub(self.collector)
        self.lifecycle = Lifecycle(notify, self.collector)
        self._watcher: ChangeWatcher | None = None
        self._runners: list[web.AppRunner] = []
        self._started = False
        self._stopping = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopping

    def _on_change(self, event: ChangeEvent) -> None:
        self.hub.publish(event)

    async def _bind(self, app: web.Application, port: int) -> None:
        runner = web.AppRunner(
            app,
            handler_cancellation=True,
            shutdown_timeout=SHUTDOWN_TIMEOUT,
            access_log=None,
        )
        await runner.setup()
        self._runners.append(runner)
        site = web.TCPSite(runner, self.config.host, port)
        await site.start()

    async def start(self) -> None:
        """Bind both listeners, start watching, then emit ``listening``.

        If a listener cannot be bound, anything already started is torn
        down again and the OSError propagates.

        """
        if self._started:
            return
        config = self.config
        proxy_app = create_proxy_app(
            config, ResponseRewriter(self.script), collector=self.collector,
        )
        livereload_app = create_livereload_app(config, self.hub)

        try:
            await self._bind(livereload_app, config.livereload_port)
            _log(f"Livereload server is listening on {config.livereload_url}")
            await self._bind(proxy_app, config.proxy_port)
            _log(
                f"Livereload proxy is listening on {config.proxy_url} "
                f"and proxying to {config.upstream_url}"
            )
        except OSError:
            await self._cleanup_runners()
            raise

        self._watcher = ChangeWatcher(config.watch_path, self._on_change)
        self._watcher.start()
        self._started = True
        self.lifecycle.emit("listening")

    async def stop(self) -> None:
        """Emit ``closing``, stop the watcher and both listeners, emit ``close``.

        Idempotent: only the first call does anything.

        """
        if self._stopping:
            return
        self._stopping = True
        self.lifecycle.emit("closing")

        if self._watcher is not None:
            await asyncio.to_thread(self._watcher.stop)
            self._watcher = None
        self.hub.close()
        await self._cleanup_runners()

        _log("Servers closed, exiting")
        self.lifecycle.emit("close")

    async def _cleanup_runners(self) -> None:
        runners, self._runners = self._runners, []
        await asyncio.gather(*(runner.cleanup() for runner in runners))


async def serve(
    config: ProxyConfig,
    *,
    notify: NotifySink | None = None,
    stop_signals: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT),
) -> None:
    """Run until one of *stop_signals* arrives, then shut down cleanly."""
    from reload_proxy.banner import print_banner

    t0 = time.perf_counter()
    runtime = ReloadProxy(config, notify=notify)
    await runtime.start()
    print_banner(config, load_ms=(time.perf_counter() - t0) * 1000)

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    def _request_stop(signum: signal.Signals) -> None:
        _log(f"Received {signum.name}, closing servers")
        stop_requested.set()

    for signum in stop_signals:
        loop.add_signal_handler(signum, _request_stop, signum)
    try:
        await stop_requested.wait()
    finally:
        for signum in stop_signals:
            loop.remove_signal_handler(signum)
        await runtime.stop()


def run(config: ProxyConfig, *, notify: NotifySink | None = None) -> None:
    """Start reload-proxy and block until it has been stopped by a signal."""
    asyncio.run(serve(config, notify=notify))
