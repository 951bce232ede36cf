"""Forwarding proxy — replays each inbound request against the upstream.

Requests are buffered completely, sent to the upstream with a shared
``aiohttp.ClientSession``, and the buffered response is handed to the
ResponseRewriter.  While the upstream refuses connections (a dev server
restarting, say) the whole request is retried a bounded number of times.

Retry state machine, per request::

    attempting --ok--------------------------> succeeded
    attempting --refused, retries left-------> retrying --delay--> attempting
    attempting --refused, no retries left----> failed (UpstreamUnreachable, 502)
    attempting --other transport failure-----> failed (UpstreamError, 500)

"""

from __future__ import annotations

import asyncio
import errno
import sys
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp
from aiohttp import web
from multidict import CIMultiDict
from yarl import URL

from reload_proxy._errors import (
    ReloadProxyError,
    UpstreamError,
    UpstreamRefused,
    UpstreamUnreachable,
    status_for_error,
)
from reload_proxy.proxy.messages import ProxyRequest, UpstreamResponse, headers_from_raw

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from reload_proxy._types import RetryPhase
    from reload_proxy.config import ProxyConfig
    from reload_proxy.observability.collector import ProxyCollector
    from reload_proxy.proxy.rewriter import ResponseRewriter

    type SendOnce = Callable[[ProxyRequest], Awaitable[UpstreamResponse]]


# Inbound framing is dropped: the buffered body is re-framed by aiohttp.
_DROPPED_REQUEST_HEADERS = frozenset({"transfer-encoding"})

# Headers aiohttp would otherwise invent; the client's own are forwarded as is.
_SKIP_AUTO_HEADERS = ("Accept", "Accept-Encoding", "User-Agent", "Content-Type")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How long to keep retrying a refused upstream connection.

    Attributes:
        max_retries: Attempts made after the first one.
        delay_ms: Fixed wait between attempts, in milliseconds.

    """

    max_retries: int = 5
    delay_ms: int = 200

    @property
    def delay(self) -> float:
        """Wait between attempts, in seconds."""
        return self.delay_ms / 1000

    def initial_state(self) -> RetryState:
        return RetryState(attempts_remaining=self.max_retries)


@dataclass(slots=True)
class RetryState:
    """Retry bookkeeping for one request; never shared between requests.

    Attributes:
        attempts_remaining: Retries still allowed.
        attempts: Attempts started so far.
        phase: Current state of the retry state machine.

    """

    attempts_remaining: int
    attempts: int = 0
    phase: RetryPhase = "attempting"


def is_connection_refused(exc: BaseException) -> bool:
    """Whether *exc* (or an exception it was raised from) is ECONNREFUSED."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionRefusedError):
            return True
        os_error = getattr(current, "os_error", None)
        if isinstance(os_error, ConnectionRefusedError):
            return True
        if isinstance(os_error, OSError) and os_error.errno == errno.ECONNREFUSED:
            return True
        if isinstance(current, OSError) and current.errno == errno.ECONNREFUSED:
            return True
        current = current.__cause__ or current.__context__
    return False


async def read_request(request: web.BaseRequest) -> ProxyRequest:
    """Buffer *request* into a ProxyRequest."""
    body = await request.read()
    headers = CIMultiDict(
        (name, value)
        for name, value in headers_from_raw(request.raw_headers).items()
        if name.lower() not in _DROPPED_REQUEST_HEADERS
    )
    return ProxyRequest(
        method=request.method,
        path=request.raw_path,
        headers=headers,
        body=body,
    )


class ForwardingProxy:
    """aiohttp handler forwarding every request to the upstream.

    Args:
        config: Upstream address and retry settings.
        rewriter: Turns upstream responses into downstream ones.
        collector: Optional diagnostics collector.
        send_once: Replaces the single-attempt upstream call (for tests).

    """

    def __init__(
        self,
        config: ProxyConfig,
        rewriter: ResponseRewriter,
        *,
        collector: ProxyCollector | None = None,
        send_once: SendOnce | None = None,
    ) -> None:
        self._config = config
        self._rewriter = rewriter
        self._collector = collector
        self._policy = RetryPolicy(max_retries=config.max_retries, delay_ms=config.retry_delay)
        self._send_once = send_once or self.send_once
        self._session: aiohttp.ClientSession | None = None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # ----- Outbound session -----

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                # Dev upstreams restart often; stale keep-alive sockets
                # would surface as spurious 500s.
                connector=aiohttp.TCPConnector(limit=0, force_close=True),
                timeout=aiohttp.ClientTimeout(total=None),
                cookie_jar=aiohttp.DummyCookieJar(),
                auto_decompress=False,
            )
        return self._session

    async def aclose(self) -> None:
        """Close the outbound connection pool."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def session_ctx(self, app: web.Application) -> AsyncIterator[None]:
        """aiohttp ``cleanup_ctx`` owning the outbound session."""
        self._get_session()
        yield
        await self.aclose()

    # ----- Upstream calls -----

    def upstream_url(self, path: str) -> URL:
        return URL(f"{self._config.upstream_url}{path}", encoded=True)

    async def send_once(self, proxy_request: ProxyRequest) -> UpstreamResponse:
        """Make one upstream attempt and buffer the response.

        Raises:
            UpstreamRefused: Nothing is listening at the upstream address.
            UpstreamError: Any other transport failure.

        """
        session = self._get_session()
        url = self.upstream_url(proxy_request.path)
        try:
            async with session.request(
                proxy_request.method,
                url,
                headers=proxy_request.headers,
                data=proxy_request.body or None,
                allow_redirects=False,
                skip_auto_headers=_SKIP_AUTO_HEADERS,
            ) as response:
                body = await response.read()
                return UpstreamResponse(
                    status=response.status,
                    reason=response.reason,
                    headers=headers_from_raw(response.raw_headers),
                    body=body,
                )
        except aiohttp.ClientConnectorError as exc:
            if is_connection_refused(exc):
                msg = f"Connection to {self._config.upstream_url} refused"
                raise UpstreamRefused(msg) from exc
            msg = f"Cannot connect to {self._config.upstream_url}: {exc}"
            raise UpstreamError(msg) from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f"Upstream request {proxy_request.method} {proxy_request.path} failed: {exc!r}"
            raise UpstreamError(msg) from exc

    async def fetch(
        self,
        proxy_request: ProxyRequest,
        state: RetryState | None = None,
    ) -> UpstreamResponse:
        """Send *proxy_request*, retrying while the upstream refuses connections.

        Raises:
            UpstreamUnreachable: Still refused after ``max_retries`` retries.
            UpstreamError: A failure other than a refused connection.

        """
        if state is None:
            state = self._policy.initial_state()

        while True:
            state.phase = "attempting"
            state.attempts += 1
            try:
                response = await self._send_once(proxy_request)
            except UpstreamRefused as exc:
                if state.attempts_remaining <= 0:
                    state.phase = "failed"
                    msg = (
                        f"Upstream {self._config.upstream_url} refused "
                        f"{state.attempts} connection attempts"
                    )
                    raise UpstreamUnreachable(msg, attempts=state.attempts) from exc
                state.attempts_remaining -= 1
                state.phase = "retrying"
                if self._collector is not None:
                    self._collector.record_retry(
                        proxy_request.method,
                        proxy_request.path,
                        attempts_remaining=state.attempts_remaining,
                    )
                await asyncio.sleep(self._policy.delay)
                continue
            except UpstreamError:
                state.phase = "failed"
                raise
            state.phase = "succeeded"
            return response

    # ----- aiohttp handler -----

    async def handle(self, request: web.BaseRequest) -> web.StreamResponse:
        """Proxy one request.  Never raises for per-request failures."""
        started = time.perf_counter()
        downstream = web.StreamResponse()
        state = self._policy.initial_state()
        try:
            proxy_request = await read_request(request)
            upstream = await self.fetch(proxy_request, state)
            outgoing = await self._rewriter.send(request, downstream, upstream)
        except ConnectionResetError as exc:
            # Client went away mid-response; there is no one left to answer.
            if self._collector is not None:
                self._collector.record_failure(request.method, request.raw_path, status=0, error=exc)
            return downstream
        except Exception as exc:
            await self._fail(request, downstream, exc)
            return downstream

        if self._collector is not None:
            self._collector.record_proxied(
                request.method,
                request.raw_path,
                status=outgoing.status,
                attempts=state.attempts,
                injected=outgoing is not upstream,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        return downstream

    async def _fail(
        self,
        request: web.BaseRequest,
        downstream: web.StreamResponse,
        exc: Exception,
    ) -> None:
        """Answer 502/500 if nothing was sent yet, otherwise drop the connection."""
        if not isinstance(exc, ReloadProxyError):
            print(f"  Proxy error: {request.method} {request.raw_path}: {exc!r}", file=sys.stderr)

        if downstream.prepared:
            status = 0
            downstream.force_close()
            transport = request.transport
            if transport is not None and not transport.is_closing():
                transport.close()
        else:
            status = status_for_error(exc)
            downstream.set_status(status)
            downstream.headers.clear()
            downstream.content_length = 0
            downstream.force_close()
            try:
                await downstream.prepare(request)
                await downstream.write_eof()
            except ConnectionResetError:
                pass

        if self._collector is not None:
            self._collector.record_failure(request.method, request.raw_path, status=status, error=exc)


def create_proxy_app(
    config: ProxyConfig,
    rewriter: ResponseRewriter,
    *,
    collector: ProxyCollector | None = None,
) -> web.Application:
    """Create the aiohttp application serving the forwarding proxy."""
    proxy = ForwardingProxy(config, rewriter, collector=collector)
    # Bodies of any size are buffered and forwarded.
    app = web.Application(client_max_size=0)
    app.cleanup_ctx.append(proxy.session_ctx)
    app.router.add_route("*", "/{tail:.*}", proxy.handle)
    return app
