"""File watcher — reports every change under the watch root.

Nothing is filtered or categorized: any created, modified or deleted path
anywhere below the root (renames arrive as a delete plus a create) is
handed to the ``on_change`` callback, which publishes a reload.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change

from reload_proxy.observability.debug import debuglog

if TYPE_CHECKING:
    from collections.abc import Callable

    from reload_proxy._types import ChangeKind


_log = debuglog("watcher")


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A file change detected by the watcher.

    Attributes:
        path: Absolute path to the changed file or directory.
        kind: Type of filesystem change.

    """

    path: Path
    kind: ChangeKind


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, ChangeKind] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


def to_change_events(raw_changes: set[tuple[Change, str]]) -> list[ChangeEvent]:
    """Convert a watchfiles batch into ChangeEvents, ordered by path."""
    return [
        ChangeEvent(path=Path(path_str), kind=_CHANGE_KIND_MAP.get(change, "modified"))
        for change, path_str in sorted(raw_changes, key=lambda item: (item[1], item[0]))
    ]


class ChangeWatcher:
    """Watches a directory tree and reports changes to the event loop.

    Runs ``watchfiles.watch`` (recursive) in a background thread and
    delivers each ChangeEvent to *on_change* on *loop* via
    ``call_soon_threadsafe``.

    Args:
        root: Directory to watch.
        on_change: Called on the loop thread once per change.
        loop: Event loop to deliver on (defaults to the running loop at ``start()``).
        debounce: Milliseconds watchfiles groups changes for.

    """

    def __init__(
        self,
        root: Path,
        on_change: Callable[[ChangeEvent], object],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        debounce: int = 50,
    ) -> None:
        self._root = root
        self._on_change = on_change
        self._loop = loop
        self._debounce = debounce
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def root(self) -> Path:
        return self._root

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching in a background thread.  No-op if already running."""
        if self.is_running:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="reload-proxy-watcher",
            daemon=True,
        )
        self._thread.start()
        _log(f"Watching {self._root} for changes")

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def _deliver(self, event: ChangeEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._on_change, event)
        except RuntimeError:
            # Loop closed between the check and the call during shutdown.
            pass

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and hand events to the loop."""
        from watchfiles import watch

        for raw_changes in watch(
            self._root,
            stop_event=self._stop_event,
            debounce=self._debounce,
            step=50,
            recursive=True,
        ):
            for event in to_change_events(raw_changes):
                self._deliver(event)
