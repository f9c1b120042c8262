"""
Worker message protocol.

Commands flow main -> worker, events flow worker -> main. Every message is
a frozen dataclass, so nothing mutable is ever shared between contexts.
Delivery is FIFO per mailbox; no ordering holds across independent streams
(a scan finishing and a watch event may interleave).
"""

import queue
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple, Union

from ..config import Config
from ..index.registry import Snapshot
from ..index.watcher import WatchEvent

# ============================================================================
# Session requests (issued to the host by the worker)
# ============================================================================

@dataclass(frozen=True)
class Switch:
    name: str
    cwd: str


@dataclass(frozen=True)
class Create:
    name: str
    cwd: str


@dataclass(frozen=True)
class Kill:
    name: str


SessionAction = Union[Switch, Create, Kill]


@dataclass(frozen=True)
class SessionList:
    names: FrozenSet[str] = frozenset()
    current: Optional[str] = None


# ============================================================================
# Commands: main -> worker
# ============================================================================

@dataclass(frozen=True)
class LoadProjects:
    pass


@dataclass(frozen=True)
class StartScan:
    roots: Tuple[str, ...] = ()  # empty = every configured root


@dataclass(frozen=True)
class RecordAccess:
    path: str
    timestamp: float


@dataclass(frozen=True)
class WatchEvents:
    events: Tuple[WatchEvent, ...]


@dataclass(frozen=True)
class SessionRequest:
    action: SessionAction


@dataclass(frozen=True)
class RefreshSessions:
    pass


@dataclass(frozen=True)
class ReloadConfig:
    config: Config


@dataclass(frozen=True)
class Shutdown:
    pass


Command = Union[LoadProjects, StartScan, RecordAccess, WatchEvents, SessionRequest,
                RefreshSessions, ReloadConfig, Shutdown]


# ============================================================================
# Events: worker -> main
# ============================================================================

@dataclass(frozen=True)
class ProjectsLoaded:
    snapshot: Snapshot


@dataclass(frozen=True)
class SnapshotUpdated:
    snapshot: Snapshot


@dataclass(frozen=True)
class ScanProgress:
    root: str
    found: int
    done: bool
    errors: int = 0


@dataclass(frozen=True)
class SessionsUpdated:
    sessions: SessionList


@dataclass(frozen=True)
class SessionResult:
    action: SessionAction
    ok: bool
    message: str = ""


@dataclass(frozen=True)
class WorkerError:
    kind: str
    message: str


Event = Union[ProjectsLoaded, SnapshotUpdated, ScanProgress, SessionsUpdated,
              SessionResult, WorkerError]


# ============================================================================
# Mailbox
# ============================================================================

class Mailbox:
    """Thread-safe FIFO between exactly one sender side and one receiver side."""

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()

    def put(self, message) -> None:
        self._queue.put(message)

    def get(self, timeout: Optional[float] = None):
        """Next message, waiting up to `timeout` seconds; None if nothing came."""
        try:
            if timeout is not None and timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self, limit: Optional[int] = None) -> List:
        """Every queued message without blocking (at most `limit`)."""
        messages = []
        while limit is None or len(messages) < limit:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return messages

    def __len__(self) -> int:
        return self._queue.qsize()
