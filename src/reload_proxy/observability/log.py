"""Event log — bounded, thread-safe store of diagnostic events.

Keeps the most recent ``ProxyEvent`` objects in a ring buffer so tests and
the debug channel can inspect what the proxy did.

Thread Safety:
    All methods are protected by a ``threading.Lock``.  The watcher thread
    and the event loop may record concurrently.

"""

import threading
from collections import Counter, deque
from typing import Any

from reload_proxy.observability.events import ProxyEvent


class EventLog:
    """Ring buffer of events with simple queries.

    Args:
        max_events: Maximum number of events to retain; older ones are dropped.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 5_000) -> None:
        self._max_events = max_events
        self._events: deque[ProxyEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: ProxyEvent) -> None:
        """Record an event."""
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        path: str | None = None,
        limit: int = 100,
    ) -> list[ProxyEvent]:
        """Return matching events, most recent first.

        Args:
            event_type: Only return events of this type.
            path: Only return events whose ``path`` contains this substring.
            limit: Maximum number of events to return.

        """
        with self._lock:
            snapshot = list(self._events)

        results: list[ProxyEvent] = []
        for event in reversed(snapshot):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if path is not None and path not in getattr(event, "path", ""):
                continue
            results.append(event)
        return results

    def recent(self, n: int = 20) -> list[ProxyEvent]:
        """Return the N most recent events, oldest first."""
        with self._lock:
            items = list(self._events)
        return items[-n:]

    def clear(self) -> int:
        """Clear all events and return the count that was cleared."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Return the event count per type."""
        with self._lock:
            by_type = Counter(type(event).__name__ for event in self._events)
            total = len(self._events)
        return {
            "total": total,
            "max_events": self._max_events,
            "by_type": dict(by_type),
        }
