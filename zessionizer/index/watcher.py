"""
Watch-event Reconciler - folds filesystem notifications into registry deltas.

Raw watchdog events become WatchEvents, which the reconciler turns into:
  - add: a marker (or a directory holding one) appeared
  - pending removal: a marker or project directory disappeared

Pending removals are confirmed by a timer-driven sweep once the debounce
window has passed, so editor and build-tool churn (delete + recreate)
collapses to the final observed state.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .registry import MARKERS, MarkerKind, canonical
from .scanner import depth_allows, detect_marker

log = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.5


class EventKind(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    RENAMED = "renamed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    path: str
    dest_path: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Addition:
    path: str
    marker_kind: MarkerKind


# ============================================================================
# Reconciler
# ============================================================================

class Reconciler:
    """Per-path pending table plus the rules that feed it."""

    def __init__(self, roots: Sequence, max_depth: int,
                 debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
                 detect: Callable[[Path], Optional[MarkerKind]] = detect_marker):
        self.debounce = debounce_seconds
        self.detect = detect
        self._pending: Dict[str, float] = {}  # path -> time of last removal signal
        self.configure(roots, max_depth)

    def configure(self, roots: Sequence, max_depth: int):
        self.roots = [Path(canonical(r)) for r in roots]
        self.max_depth = max_depth

    @property
    def pending(self) -> Dict[str, float]:
        return dict(self._pending)

    def _relative(self, path: Path) -> Optional[Path]:
        for root in self.roots:
            try:
                return path.relative_to(root)
            except ValueError:
                continue
        return None

    def _in_scope(self, path: Path, for_add: bool) -> bool:
        rel = self._relative(path)
        if rel is None:
            return False
        if any(part in MARKERS for part in rel.parts[:-1]):
            return False
        return not for_add or depth_allows(len(rel.parts), self.max_depth)

    # =========================================================================
    # Feeding
    # =========================================================================

    def feed(self, event: WatchEvent) -> List[Addition]:
        """
        Apply one event to the pending table.

        Returns:
            Projects to add right away (adds are idempotent merges)
        """
        if event.kind == EventKind.RENAMED:
            self._on_removed(event.path, event.timestamp)
            if event.dest_path is None:
                return []
            return self._on_created(event.dest_path)
        if event.kind == EventKind.CREATED:
            return self._on_created(event.path)
        if event.kind == EventKind.REMOVED:
            self._on_removed(event.path, event.timestamp)
            return []
        return self._on_modified(event.path)

    def _on_created(self, raw: str) -> List[Addition]:
        path = Path(canonical(raw))
        project = path.parent if path.name in MARKERS else path
        if not self._in_scope(project, for_add=True):
            return []
        kind = self.detect(project)
        if kind is None:
            return []
        key = str(project)
        if self._pending.pop(key, None) is not None:
            log.debug("removal of %s cancelled by re-creation", key)
        return [Addition(key, kind)]

    def _on_removed(self, raw: str, timestamp: float):
        path = Path(canonical(raw))
        project = path.parent if path.name in MARKERS else path
        if not self._in_scope(project, for_add=False):
            return
        self._pending[str(project)] = timestamp

    def _on_modified(self, raw: str) -> List[Addition]:
        path = Path(canonical(raw))
        if path.name not in MARKERS:
            return []
        return self._on_created(raw)

    # =========================================================================
    # Sweep
    # =========================================================================

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Pop pending removals whose debounce window has elapsed.

        The caller still verifies each path is really gone before removing.
        """
        now = time.time() if now is None else now
        due = [p for p, ts in self._pending.items() if now - ts >= self.debounce]
        for path in due:
            del self._pending[path]
        return due

    def next_due(self) -> Optional[float]:
        """Earliest time a pending removal becomes due, if any."""
        if not self._pending:
            return None
        return min(self._pending.values()) + self.debounce


# ============================================================================
# File Watcher
# ============================================================================

def _event_path(raw) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return str(raw)


def _inside_marker(path: str) -> bool:
    return any(part in MARKERS for part in Path(path).parts[:-1])


class ProjectWatchHandler(FileSystemEventHandler):
    """Translates watchdog events into WatchEvents for the worker."""

    def __init__(self, post: Callable[[WatchEvent], None]):
        self.post = post

    def _emit(self, kind: EventKind, src, dest=None):
        path = _event_path(src)
        if _inside_marker(path):
            return
        dest_path = _event_path(dest) if dest else None
        self.post(WatchEvent(kind=kind, path=path, dest_path=dest_path))

    def on_created(self, event: FileSystemEvent):
        if event.is_directory or Path(_event_path(event.src_path)).name in MARKERS:
            self._emit(EventKind.CREATED, event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        if event.is_directory or Path(_event_path(event.src_path)).name in MARKERS:
            self._emit(EventKind.REMOVED, event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if Path(_event_path(event.src_path)).name in MARKERS:
            self._emit(EventKind.MODIFIED, event.src_path)

    def on_moved(self, event: FileSystemEvent):
        self._emit(EventKind.RENAMED, event.src_path, event.dest_path)


class WatcherManager:
    """One recursive observer per readable scan root."""

    def __init__(self, post: Callable[[WatchEvent], None]):
        self.handler = ProjectWatchHandler(post)
        self.observers: Dict[str, Observer] = {}

    def start(self, roots: Sequence[Path]):
        for root in roots:
            key = str(root)
            if key in self.observers:
                continue
            if not Path(root).is_dir():
                log.warning("not watching %s: not a directory", key)
                continue
            observer = Observer()
            try:
                observer.schedule(self.handler, key, recursive=True)
                observer.start()
            except OSError as e:
                log.warning("could not watch %s: %s", key, e)
                continue
            self.observers[key] = observer
            log.info("File watcher started for: %s", key)

    def stop(self):
        for key in list(self.observers):
            observer = self.observers.pop(key)
            observer.stop()
            observer.join()
