"""
Background worker - owns the registry, the scanner, the reconciler, the
store and every host call.

The worker runs on its own thread and talks to the main context only
through two mailboxes. It wakes when a command arrives or when the tick
elapses, so pending removals are swept even when nothing else happens.
Scans are walked in chunks between mailbox polls; a new scan of a root
supersedes the one in flight.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

from ..config import Config
from ..errors import HostError, ScanError, StoreError, ZessionizerError
from ..index.registry import Registry, canonical
from ..index.scanner import Discovery, ScanReport, marker_present, walk_root
from ..index.store import open_store
from ..index.watcher import Reconciler, WatcherManager, WatchEvent
from ..ranking.scorer import Scorer
from .messages import (Create, Kill, LoadProjects, Mailbox, ProjectsLoaded, RecordAccess,
                       RefreshSessions, ReloadConfig, ScanProgress, SessionList, SessionRequest,
                       SessionResult, SessionsUpdated, Shutdown, SnapshotUpdated, StartScan,
                       Switch, WatchEvents, WorkerError)

log = logging.getLogger(__name__)

TICK_SECONDS = 0.5
SCAN_CHUNK = 64                 # discoveries merged per slice before polling the inbox
SESSION_POLL_SECONDS = 2.0
LOAD_RETRY_SECONDS = 5.0


@dataclass
class _ActiveScan:
    walk: Iterator[Discovery]
    report: ScanReport
    reported: int = 0


class Worker:
    """
    Single owner of all mutable project state.

    Usage:
        worker = Worker(config, host=TmuxHost())
        worker.start()
        worker.post(LoadProjects())
        for event in worker.outbox.drain():
            ...
        worker.stop()

    Tests drive it synchronously with `step()` instead of `start()`.
    """

    def __init__(self, config: Config, store=None, host=None,
                 clock: Callable[[], float] = time.time, watch: bool = True,
                 poll_sessions: bool = True):
        self.config = config
        self.store = store if store is not None else open_store(config)
        self.host = host
        self.clock = clock
        self.inbox = Mailbox()
        self.outbox = Mailbox()

        self.registry = Registry(Scorer(config.half_life_seconds))
        self.reconciler = Reconciler(config.roots, config.scan_depth, config.debounce_seconds)
        self.watchers = WatcherManager(self._post_watch_event) if watch else None
        self.poll_sessions = poll_sessions

        self._scans: Dict[str, _ActiveScan] = {}
        self._published = 0
        self._failed_save_version: Optional[int] = None
        # Saves wait until the store has been read, so an unreachable store
        # is never overwritten with a partial registry
        self._store_loaded = False
        self._load_requested = False
        self._next_load_retry = 0.0
        self._sessions: Optional[SessionList] = None
        self._last_host_error: Optional[str] = None
        self._next_session_poll = 0.0
        self._thread: Optional[threading.Thread] = None
        self.running = False

    def __repr__(self):
        return f"Worker(projects={len(self.registry)}, scans={sorted(self._scans)})"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def post(self, command) -> None:
        self.inbox.put(command)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self.running = True
        self._thread = threading.Thread(target=self.run, name="zessionizer-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            self.running = False
            self._shutdown()
            return
        self.post(Shutdown())
        self._thread.join(timeout)
        self._thread = None

    def run(self) -> None:
        self.running = True
        log.debug("worker started")
        while self.running:
            try:
                self.step(self._wait_time())
            except Exception as e:
                log.exception("worker step failed")
                self._emit(WorkerError(kind=ZessionizerError.kind,
                                       message=f"{type(e).__name__}: {e}"))
        log.debug("worker stopped")

    def step(self, timeout: float = 0) -> None:
        """One loop iteration: at most one command, one scan slice, sweep, publish."""
        command = self.inbox.get(timeout)
        if command is not None:
            self.handle(command)
        self._retry_load()
        self._advance_scans()
        self._sweep()
        if self.poll_sessions:
            self._poll_sessions()
        self._publish()

    def run_until_idle(self, limit: int = 10000) -> None:
        """Process every queued command and finish every scan (synchronous use)."""
        for _ in range(limit):
            if not len(self.inbox) and not self._scans:
                break
            self.step(0)
        self._publish()

    def _wait_time(self) -> float:
        if self._scans:
            return 0
        wait = TICK_SECONDS
        due = self.reconciler.next_due()
        if self._load_requested and not self._store_loaded:
            due = self._next_load_retry if due is None else min(due, self._next_load_retry)
        if due is not None:
            wait = min(wait, max(0.0, due - self.clock()))
        return wait

    def _emit(self, event) -> None:
        self.outbox.put(event)

    # =========================================================================
    # Command Handling
    # =========================================================================

    def handle(self, command) -> None:
        try:
            if isinstance(command, LoadProjects):
                self._load_requested = True
                self._load()
            elif isinstance(command, StartScan):
                self._start_scans(command.roots)
            elif isinstance(command, RecordAccess):
                self.registry.record_access(canonical(command.path), command.timestamp)
            elif isinstance(command, WatchEvents):
                self._apply_watch_events(command.events)
            elif isinstance(command, SessionRequest):
                self._session_request(command.action)
            elif isinstance(command, RefreshSessions):
                self._refresh_sessions(force=True)
            elif isinstance(command, ReloadConfig):
                self._reload(command.config)
            elif isinstance(command, Shutdown):
                self._shutdown()
            else:
                log.warning("unknown command %r ignored", command)
        except ZessionizerError as e:
            log.error("%s failed: %s", type(command).__name__, e)
            self._emit(WorkerError(kind=e.kind, message=str(e)))
        except OSError as e:
            log.error("%s failed: %s", type(command).__name__, e)
            self._emit(WorkerError(kind=ZessionizerError.kind, message=str(e)))

    def _load(self) -> None:
        fresh = not len(self.registry)
        try:
            records = self.store.load()
        except StoreError:
            self._next_load_retry = self.clock() + LOAD_RETRY_SECONDS
            raise
        self._store_loaded = True
        for record in records:
            self.registry.merge_record(record)
        if fresh:
            # Registry now mirrors the store exactly
            self.registry.dirty = False
        self._published = self.registry.version
        log.info("Loaded %d projects from %r", len(self.registry), self.store)
        self._emit(ProjectsLoaded(self.registry.snapshot()))

    def _retry_load(self) -> None:
        if self._store_loaded or not self._load_requested:
            return
        if self.clock() < self._next_load_retry:
            return
        log.info("retrying store load from %r", self.store)
        self.handle(LoadProjects())

    def _reload(self, config: Config) -> None:
        old = self.config
        self.config = config
        self.registry.scorer.half_life = config.half_life_seconds
        self.reconciler.configure(config.roots, config.scan_depth)
        self.reconciler.debounce = config.debounce_seconds

        if (config.store_backend, config.store_path, config.redis_url) != \
                (old.store_backend, old.store_path, old.redis_url):
            self.store = open_store(config)
            # Merge the new store before writing the registry into it
            self.registry.dirty = True
            self._failed_save_version = None
            self._store_loaded = False
            self._load_requested = True
            self._next_load_retry = 0.0

        if self.watchers is not None and self.watchers.observers and config.roots != old.roots:
            self.watchers.stop()
        # Scans of roots no longer configured are dropped
        for root in list(self._scans):
            if Path(root) not in config.roots:
                del self._scans[root]
        log.info("configuration reloaded, rescanning %d roots", len(config.roots))
        self._start_scans(())

    def _shutdown(self) -> None:
        self.running = False
        self._scans.clear()
        if self.watchers is not None:
            self.watchers.stop()
        if self.registry.dirty and not self._store_loaded:
            log.warning("store %r was never read, changes not saved", self.store)
        self._save()

    # =========================================================================
    # Scanning
    # =========================================================================

    def _start_scans(self, roots) -> None:
        targets = [canonical(r) for r in roots] if roots else [str(r) for r in self.config.roots]
        for root in targets:
            if root in self._scans:
                log.debug("[%s] in-flight scan superseded", root)
            report = ScanReport(root=root)
            self._scans[root] = _ActiveScan(
                walk=walk_root(Path(root), self.config.scan_depth, report),
                report=report,
            )
        if self.watchers is not None:
            self.watchers.start(self.config.roots)

    def _advance_scans(self) -> None:
        now = self.clock()
        for root in list(self._scans):
            scan = self._scans[root]
            finished = False
            try:
                for _ in range(SCAN_CHUNK):
                    discovery = next(scan.walk)
                    self.registry.merge_discovered(discovery.path, discovery.marker_kind, now)
            except StopIteration:
                finished = True
            except OSError as e:
                log.error("[%s] scan aborted: %s", root, e)
                self._emit(WorkerError(kind=ScanError.kind, message=f"{root}: {e}"))
                del self._scans[root]
                continue

            report = scan.report
            if finished:
                del self._scans[root]
                if report.completed:
                    removed = self.registry.note_scan_complete(root, report.found, marker_present)
                    if removed:
                        log.info("[%s] removed %d vanished projects", root, len(removed))
                self._emit(ScanProgress(root=root, found=len(report.found), done=True,
                                        errors=len(report.errors)))
            elif len(report.found) != scan.reported:
                scan.reported = len(report.found)
                self._emit(ScanProgress(root=root, found=scan.reported, done=False,
                                        errors=len(report.errors)))

    # =========================================================================
    # Watch Events
    # =========================================================================

    def _post_watch_event(self, event: WatchEvent) -> None:
        # Called on observer threads; only touches the inbox
        self.post(WatchEvents((event,)))

    def _apply_watch_events(self, events) -> None:
        now = self.clock()
        for event in events:
            for addition in self.reconciler.feed(event):
                self.registry.merge_discovered(addition.path, addition.marker_kind, now)

    def _sweep(self) -> None:
        for path in self.reconciler.sweep(self.clock()):
            if marker_present(path):
                log.debug("pending removal of %s dropped: marker is back", path)
                continue
            for project in self.registry.paths_under(path):
                if not marker_present(project):
                    self.registry.remove(project)

    # =========================================================================
    # Sessions
    # =========================================================================

    def _session_request(self, action) -> None:
        if self.host is None:
            self._emit(SessionResult(action=action, ok=False, message="no session host"))
            return
        try:
            if isinstance(action, Switch):
                self.host.switch(action.name, action.cwd)
            elif isinstance(action, Create):
                self.host.create(action.name, action.cwd)
            elif isinstance(action, Kill):
                self.host.kill(action.name)
            else:
                raise HostError(f"unsupported session action {action!r}")
        except HostError as e:
            log.warning("session request %r failed: %s", action, e)
            self._emit(SessionResult(action=action, ok=False, message=str(e)))
            return
        self._emit(SessionResult(action=action, ok=True))
        self._refresh_sessions(force=True)

    def _refresh_sessions(self, force: bool = False) -> None:
        if self.host is None:
            return
        try:
            sessions = self.host.list_sessions()
        except HostError as e:
            message = str(e)
            if force or message != self._last_host_error:
                self._emit(WorkerError(kind=HostError.kind, message=message))
            self._last_host_error = message
            return
        self._last_host_error = None
        if force or sessions != self._sessions:
            self._sessions = sessions
            self._emit(SessionsUpdated(sessions))

    def _poll_sessions(self) -> None:
        now = self.clock()
        if self.host is None or now < self._next_session_poll:
            return
        self._next_session_poll = now + SESSION_POLL_SECONDS
        self._refresh_sessions()

    # =========================================================================
    # Publishing & Persistence
    # =========================================================================

    def _publish(self) -> None:
        if self.registry.version != self._published:
            self._published = self.registry.version
            self._emit(SnapshotUpdated(self.registry.snapshot()))
        if self.registry.dirty and self.registry.version != self._failed_save_version:
            # _save is a no-op until the store has been read
            self._save()

    def _save(self) -> None:
        if not self.registry.dirty or not self._store_loaded:
            return
        try:
            self.store.save(self.registry.records())
        except StoreError as e:
            # Keep dirty; the next mutation retries
            self._failed_save_version = self.registry.version
            log.error("persist failed: %s", e)
            self._emit(WorkerError(kind=StoreError.kind, message=str(e)))
            return
        self.registry.dirty = False
        self._failed_save_version = None
