"""Diagnostics — event model, event log and the verbose debug channel.

Records what happens across the stack:
- **Proxy**: requests answered, retries, failures
- **Live reload**: subscribers joining/leaving, change broadcasts
- **Lifecycle**: listening, closing, close

All events are frozen dataclasses with nanosecond timestamps, safe for
concurrent production from the watcher thread and the event loop.

Quick Start:
    >>> from reload_proxy.observability import ProxyCollector
    >>> collector = ProxyCollector()
    >>> collector.record_lifecycle("listening")
    >>> len(collector.log)
    1

"""

from reload_proxy.observability.collector import ProxyCollector
from reload_proxy.observability.debug import debug_enabled, debuglog, set_debug
from reload_proxy.observability.events import (
    ChangeBroadcast,
    LifecycleEvent,
    ProxyEvent,
    RequestProxied,
    SubscriberChanged,
    UpstreamFailed,
    UpstreamRetried,
    now_ns,
)
from reload_proxy.observability.log import EventLog

__all__ = [
    "ChangeBroadcast",
    "EventLog",
    "LifecycleEvent",
    "ProxyCollector",
    "ProxyEvent",
    "RequestProxied",
    "SubscriberChanged",
    "UpstreamFailed",
    "UpstreamRetried",
    "debug_enabled",
    "debuglog",
    "now_ns",
    "set_debug",
]
