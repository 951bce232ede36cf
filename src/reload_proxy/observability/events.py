"""Event model for proxy diagnostics.

Defines event types for the forwarding proxy, the notification endpoint
and the process lifecycle.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Forwarding proxy events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RequestProxied:
    """A request was answered with an upstream response.

    Attributes:
        method: HTTP method of the inbound request.
        path: Raw path and query string.
        status: Status code sent downstream.
        attempts: Upstream attempts made (1 = no retry).
        injected: True if the reload script was appended.
        duration_ms: Time from request arrival to response completion.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    method: str
    path: str
    status: int
    attempts: int
    injected: bool
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class UpstreamRetried:
    """The upstream refused a connection and the request will be retried.

    Attributes:
        method: HTTP method of the inbound request.
        path: Raw path and query string.
        attempts_remaining: Retries left after this one.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    method: str
    path: str
    attempts_remaining: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class UpstreamFailed:
    """A request failed; ``status`` is what the client was told (0 = nothing).

    Attributes:
        method: HTTP method of the inbound request.
        path: Raw path and query string.
        status: Error status sent downstream, or 0 if headers were already sent.
        error: ``repr`` of the failure.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    method: str
    path: str
    status: int
    error: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Live-reload events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChangeBroadcast:
    """A file change was pushed to connected browsers.

    Attributes:
        path: Changed file path.
        kind: Type of filesystem change.
        clients_notified: Number of channels that received the frame.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    kind: str
    clients_notified: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SubscriberChanged:
    """A notification channel was added or removed.

    Attributes:
        action: What happened to the channel.
        client_id: Identifier of the channel.
        subscribers: Number of channels after the change.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    action: Literal["subscribed", "unsubscribed", "dropped"]
    client_id: str
    subscribers: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Process lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """A lifecycle notice was emitted."""

    state: Literal["listening", "closing", "close"]
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type ProxyEvent = (
    RequestProxied
    | UpstreamRetried
    | UpstreamFailed
    | ChangeBroadcast
    | SubscriberChanged
    | LifecycleEvent
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
