"""Live-reload layer — file changes to browser reloads.

Watches the file tree, fans change notifications out over SSE, and
renders the script that makes the browser listen for them.
"""

from reload_proxy.livereload.broadcaster import UPDATE_FRAME, BroadcastHub, SubscriberChannel
from reload_proxy.livereload.endpoint import NotificationServer, create_livereload_app
from reload_proxy.livereload.script import InjectedScript
from reload_proxy.livereload.watcher import ChangeEvent, ChangeWatcher

__all__ = [
    "UPDATE_FRAME",
    "BroadcastHub",
    "ChangeEvent",
    "ChangeWatcher",
    "InjectedScript",
    "NotificationServer",
    "SubscriberChannel",
    "create_livereload_app",
]
