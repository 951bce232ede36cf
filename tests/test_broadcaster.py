"""Tests for reload_proxy.livereload.broadcaster — fan-out to SSE channels."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from reload_proxy.livereload.broadcaster import (
    UPDATE_FRAME,
    BroadcastHub,
    SubscriberChannel,
)
from reload_proxy.livereload.watcher import ChangeEvent
from reload_proxy.observability import ChangeBroadcast, ProxyCollector, SubscriberChanged


async def _drain(channel: SubscriberChannel) -> list[bytes]:
    return [frame async for frame in channel]


class TestSubscriberChannel:
    """A single browser's queue of frames."""

    def test_unique_ids(self) -> None:
        assert SubscriberChannel().client_id != SubscriberChannel().client_id

    def test_explicit_id(self) -> None:
        assert SubscriberChannel("c1").client_id == "c1"

    def test_offer_queues(self) -> None:
        channel = SubscriberChannel()
        assert channel.offer(UPDATE_FRAME)
        assert channel.pending == 1

    def test_offer_after_close_refused(self) -> None:
        channel = SubscriberChannel()
        channel.close()
        assert channel.closed
        assert not channel.offer(UPDATE_FRAME)

    def test_offer_when_full_refused(self) -> None:
        channel = SubscriberChannel(max_pending=2)
        assert channel.offer(UPDATE_FRAME)
        assert channel.offer(UPDATE_FRAME)
        assert not channel.offer(UPDATE_FRAME)
        assert channel.pending == 2

    def test_close_twice(self) -> None:
        channel = SubscriberChannel()
        channel.close()
        channel.close()
        assert channel.closed

    def test_close_on_full_channel(self) -> None:
        channel = SubscriberChannel(max_pending=1)
        channel.offer(UPDATE_FRAME)
        channel.close()
        assert channel.pending == 1

    @pytest.mark.asyncio
    async def test_iteration_drains_then_ends(self) -> None:
        channel = SubscriberChannel()
        channel.offer(UPDATE_FRAME)
        channel.offer(UPDATE_FRAME)
        channel.close()
        assert await _drain(channel) == [UPDATE_FRAME, UPDATE_FRAME]

    @pytest.mark.asyncio
    async def test_iteration_waits_for_frames(self) -> None:
        channel = SubscriberChannel()
        task = asyncio.create_task(_drain(channel))
        await asyncio.sleep(0)
        assert not task.done()
        channel.offer(UPDATE_FRAME)
        channel.close()
        assert await asyncio.wait_for(task, 1) == [UPDATE_FRAME]

    def test_repr(self) -> None:
        channel = SubscriberChannel("c1")
        assert repr(channel) == "<SubscriberChannel c1 open>"
        channel.close()
        assert repr(channel) == "<SubscriberChannel c1 closed>"


class TestBroadcastHubSubscriptions:
    """Channels join and leave the hub."""

    def test_subscribe(self) -> None:
        hub = BroadcastHub()
        hub.subscribe()
        hub.subscribe()
        assert hub.subscriber_count == 2

    def test_unsubscribe_closes(self) -> None:
        hub = BroadcastHub()
        channel = hub.subscribe()
        hub.unsubscribe(channel)
        assert hub.subscriber_count == 0
        assert channel.closed

    def test_unsubscribe_idempotent(self) -> None:
        hub = BroadcastHub()
        channel = hub.subscribe()
        hub.unsubscribe(channel)
        hub.unsubscribe(channel)
        assert hub.subscriber_count == 0

    def test_unsubscribe_unknown_channel(self) -> None:
        hub = BroadcastHub()
        stranger = SubscriberChannel()
        hub.unsubscribe(stranger)
        assert stranger.closed


class TestBroadcastHubPublish:
    """Every open channel gets exactly one frame per publish."""

    def test_publish_no_subscribers(self) -> None:
        assert BroadcastHub().publish() == 0

    def test_publish_reaches_all(self) -> None:
        hub = BroadcastHub()
        channels = [hub.subscribe() for _ in range(3)]
        assert hub.publish() == 3
        assert [c.pending for c in channels] == [1, 1, 1]

    def test_unsubscribed_not_reached(self) -> None:
        hub = BroadcastHub()
        kept = hub.subscribe()
        gone = hub.subscribe()
        hub.unsubscribe(gone)
        assert hub.publish() == 1
        assert kept.pending == 1
        assert gone.pending == 0

    def test_full_channel_dropped_others_served(self) -> None:
        hub = BroadcastHub(max_pending=1)
        stuck = hub.subscribe()
        hub.publish()
        reader = hub.subscribe()
        assert hub.publish() == 1
        assert stuck.closed
        assert reader.pending == 1
        assert hub.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_frames_readable(self) -> None:
        hub = BroadcastHub()
        channel = hub.subscribe()
        hub.publish()
        hub.publish()
        hub.unsubscribe(channel)
        assert await _drain(channel) == [UPDATE_FRAME, UPDATE_FRAME]


class TestBroadcastHubClose:
    """Closing the hub ends every stream."""

    @pytest.mark.asyncio
    async def test_close_ends_channels(self) -> None:
        hub = BroadcastHub()
        channels = [hub.subscribe() for _ in range(2)]
        hub.close()
        assert hub.closed
        assert hub.subscriber_count == 0
        for channel in channels:
            assert await asyncio.wait_for(_drain(channel), 1) == []

    def test_subscribe_after_close(self) -> None:
        hub = BroadcastHub()
        hub.close()
        channel = hub.subscribe()
        assert channel.closed
        assert hub.subscriber_count == 0
        assert hub.publish() == 0


class TestBroadcastHubDiagnostics:
    """The hub reports to the collector."""

    def test_subscriber_events(self) -> None:
        collector = ProxyCollector()
        hub = BroadcastHub(collector)
        channel = hub.subscribe()
        hub.unsubscribe(channel)
        events = collector.log.query(event_type=SubscriberChanged)
        assert [e.action for e in reversed(events)] == ["subscribed", "unsubscribed"]
        assert events[0].subscribers == 0

    def test_drop_event(self) -> None:
        collector = ProxyCollector()
        hub = BroadcastHub(collector, max_pending=1)
        hub.subscribe()
        hub.publish()
        hub.publish()
        actions = [e.action for e in collector.log.query(event_type=SubscriberChanged)]
        assert actions[0] == "dropped"

    def test_broadcast_event(self) -> None:
        collector = ProxyCollector()
        hub = BroadcastHub(collector)
        hub.subscribe()
        hub.publish(ChangeEvent(path=Path("/site/index.html"), kind="modified"))
        (event,) = collector.log.query(event_type=ChangeBroadcast)
        assert event.path == "/site/index.html"
        assert event.kind == "modified"
        assert event.clients_notified == 1
