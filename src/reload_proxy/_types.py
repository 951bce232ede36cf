"""Shared type definitions for reload-proxy."""

from collections.abc import Callable
from typing import Literal

# Kind of filesystem change reported by the watcher
type ChangeKind = Literal["created", "modified", "deleted"]

# Externally observable lifecycle notices, in emission order
type LifecycleState = Literal["listening", "closing", "close"]

# Receives each lifecycle notice
type NotifySink = Callable[[str], None]

# Phases of a single proxied request's retry state machine
type RetryPhase = Literal["attempting", "retrying", "succeeded", "failed"]
