"""Notification endpoint — one Server-Sent Events stream per browser.

Every request, whatever its method or path, is answered with an event
stream and subscribed to the broadcast hub until the connection ends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from aiohttp import web

from reload_proxy.observability.debug import debuglog

if TYPE_CHECKING:
    from reload_proxy.config import ProxyConfig
    from reload_proxy.livereload.broadcaster import BroadcastHub


_log = debuglog("livereload")


def event_stream_headers(origin: str) -> dict[str, str]:
    """Response headers for the notification stream."""
    return {
        "Content-Type": "text/event-stream",
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
        "Access-Control-Allow-Origin": origin,
    }


class NotificationServer:
    """Holds each connection open and writes the hub's frames to it.

    Args:
        hub: Hub the connections subscribe to.
        origin: Value of ``Access-Control-Allow-Origin``.

    """

    def __init__(self, hub: BroadcastHub, origin: str) -> None:
        self._hub = hub
        self._origin = origin

    async def handle(self, request: web.Request) -> web.StreamResponse:
        """Stream update frames until the client leaves or the hub closes."""
        channel = self._hub.subscribe()
        response = web.StreamResponse(status=200, headers=event_stream_headers(self._origin))
        try:
            await response.prepare(request)
            async for frame in channel:
                await response.write(frame)
        except ConnectionResetError:
            _log(f"client {channel.client_id} went away")
        finally:
            self._hub.unsubscribe(channel)
        return response


def create_livereload_app(config: ProxyConfig, hub: BroadcastHub) -> web.Application:
    """Create the aiohttp application serving the notification endpoint."""
    server = NotificationServer(hub, config.origin)
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", server.handle)
    return app
