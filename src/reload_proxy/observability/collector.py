"""Proxy collector — records diagnostic events and echoes them when debugging.

Components call the ``record_*`` methods instead of printing; each call
appends a frozen event to the ``EventLog`` and, when the debug channel is
on, prints a one-line summary.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe to call from the watcher thread and the event loop.

"""

from __future__ import annotations

from reload_proxy.observability.debug import debuglog
from reload_proxy.observability.events import (
    ChangeBroadcast,
    LifecycleEvent,
    RequestProxied,
    SubscriberChanged,
    UpstreamFailed,
    UpstreamRetried,
    now_ns,
)
from reload_proxy.observability.log import EventLog

_proxy_log = debuglog("proxy")
_livereload_log = debuglog("livereload")
_lifecycle_log = debuglog("lifecycle")


class ProxyCollector:
    """Event collector shared by the proxy, hub and runtime.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Forwarding proxy -----

    def record_proxied(
        self,
        method: str,
        path: str,
        *,
        status: int,
        attempts: int = 1,
        injected: bool = False,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a request answered with an upstream response."""
        self._log.append(
            RequestProxied(
                method=method,
                path=path,
                status=status,
                attempts=attempts,
                injected=injected,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )
        marker = " +livereload" if injected else ""
        _proxy_log(f"{method} {path} -> {status}{marker} ({duration_ms:.1f}ms)")

    def record_retry(self, method: str, path: str, *, attempts_remaining: int) -> None:
        """Record a refused upstream connection that will be retried."""
        self._log.append(
            UpstreamRetried(
                method=method,
                path=path,
                attempts_remaining=attempts_remaining,
                timestamp_ns=now_ns(),
            )
        )
        _proxy_log(
            f"{method} {path}: upstream refused connection, "
            f"{attempts_remaining} retries left"
        )

    def record_failure(
        self, method: str, path: str, *, status: int, error: BaseException
    ) -> None:
        """Record a request that failed; *status* 0 means nothing could be sent."""
        self._log.append(
            UpstreamFailed(
                method=method,
                path=path,
                status=status,
                error=repr(error),
                timestamp_ns=now_ns(),
            )
        )
        _proxy_log(f"{method} {path} failed ({status or 'headers already sent'}): {error!r}")

    # ----- Live reload -----

    def record_broadcast(self, path: str, kind: str, *, clients_notified: int) -> None:
        """Record a file change pushed to browsers."""
        self._log.append(
            ChangeBroadcast(
                path=path,
                kind=kind,
                clients_notified=clients_notified,
                timestamp_ns=now_ns(),
            )
        )
        _livereload_log(f"File {path} has been {kind}, notified {clients_notified} clients")

    def record_subscriber(
        self,
        action: str,
        client_id: str,
        *,
        subscribers: int,
    ) -> None:
        """Record a channel joining or leaving the hub."""
        self._log.append(
            SubscriberChanged(
                action=action,  # type: ignore[arg-type]
                client_id=client_id,
                subscribers=subscribers,
                timestamp_ns=now_ns(),
            )
        )
        _livereload_log(f"client {client_id} {action} ({subscribers} connected)")

    # ----- Lifecycle -----

    def record_lifecycle(self, state: str, detail: str = "") -> None:
        """Record a lifecycle notice."""
        self._log.append(LifecycleEvent(state=state, timestamp_ns=now_ns()))  # type: ignore[arg-type]
        _lifecycle_log(f"{state}{': ' + detail if detail else ''}")
