"""SSE broadcaster — fans file-change notifications out to connected browsers.

Every browser holding the notification endpoint open owns one
``SubscriberChannel``.  Publishing enqueues the same ``data: update`` frame
on each channel; the endpoint handler for that connection drains the queue
onto its socket, so a slow browser only ever delays itself.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from reload_proxy.livereload.watcher import ChangeEvent
    from reload_proxy.observability.collector import ProxyCollector


# The only payload ever sent: file changes are not distinguished.
UPDATE_FRAME = b"data: update\n\n"

# Frames a channel may have pending before it is treated as dead.
DEFAULT_MAX_PENDING = 64

_CLOSED = object()


class SubscriberChannel:
    """One connected browser's push stream.

    Frames are queued by ``offer()`` and consumed by iterating the channel.
    Iteration ends once the channel is closed and its pending frames are
    drained.

    Attributes:
        client_id: Unique identifier for this connection.

    """

    __slots__ = ("_closed", "_queue", "client_id")

    def __init__(self, client_id: str | None = None, *, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.client_id = client_id or uuid.uuid4().hex[:12]
        # One extra slot so close() can always enqueue its sentinel.
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_pending + 1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of frames waiting to be written."""
        return self._queue.qsize() - (1 if self._closed and not self._queue.empty() else 0)

    def offer(self, frame: bytes) -> bool:
        """Queue *frame* without waiting.  False if closed or full."""
        if self._closed or self._queue.qsize() >= self._queue.maxsize - 1:
            return False
        self._queue.put_nowait(frame)
        return True

    def close(self) -> None:
        """Stop accepting frames and end iteration after the pending ones."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[bytes]:
        while True:
            frame = await self._queue.get()
            if frame is _CLOSED:
                return
            yield frame  # type: ignore[misc]

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<SubscriberChannel {self.client_id} {state}>"


class BroadcastHub:
    """Registry of subscriber channels with fan-out publishing.

    Thread-safe: the channel set is protected by a lock, and ``publish``
    works on a snapshot so subscribe/unsubscribe never race a delivery.
    Channels' queues are asyncio queues, so ``publish`` must run on the
    event loop thread; the watcher hands events over with
    ``loop.call_soon_threadsafe``.

    """

    def __init__(
        self,
        collector: ProxyCollector | None = None,
        *,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._channels: set[SubscriberChannel] = set()
        self._lock = threading.Lock()
        self._collector = collector
        self._max_pending = max_pending
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        """Number of open channels."""
        with self._lock:
            return len(self._channels)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> SubscriberChannel:
        """Register and return a new channel.

        After ``close()`` the returned channel is already closed, so a
        connection arriving during shutdown ends immediately.

        """
        channel = SubscriberChannel(max_pending=self._max_pending)
        with self._lock:
            if self._closed:
                channel.close()
                return channel
            self._channels.add(channel)
            count = len(self._channels)
        if self._collector is not None:
            self._collector.record_subscriber("subscribed", channel.client_id, subscribers=count)
        return channel

    def unsubscribe(self, channel: SubscriberChannel) -> None:
        """Remove and close *channel*.  Safe to call more than once."""
        with self._lock:
            if channel not in self._channels:
                channel.close()
                return
            self._channels.discard(channel)
            count = len(self._channels)
        channel.close()
        if self._collector is not None:
            self._collector.record_subscriber("unsubscribed", channel.client_id, subscribers=count)

    def publish(self, event: ChangeEvent | None = None) -> int:
        """Queue one update frame on every channel.

        A channel whose queue is full (its browser stopped reading) is
        dropped; delivery to the rest continues.

        Returns:
            Number of channels the frame was queued on.

        """
        with self._lock:
            channels = tuple(self._channels)

        delivered = 0
        for channel in channels:
            if channel.offer(UPDATE_FRAME):
                delivered += 1
                continue
            self._drop(channel)

        if self._collector is not None:
            path = str(event.path) if event is not None else ""
            kind = event.kind if event is not None else "modified"
            self._collector.record_broadcast(path, kind, clients_notified=delivered)
        return delivered

    def close(self) -> None:
        """Close every channel, ending their streams.  Later subscribers get closed channels."""
        with self._lock:
            self._closed = True
            channels = tuple(self._channels)
            self._channels.clear()
        for channel in channels:
            channel.close()

    def _drop(self, channel: SubscriberChannel) -> None:
        with self._lock:
            if channel not in self._channels:
                return
            self._channels.discard(channel)
            count = len(self._channels)
        channel.close()
        if self._collector is not None:
            self._collector.record_subscriber("dropped", channel.client_id, subscribers=count)
