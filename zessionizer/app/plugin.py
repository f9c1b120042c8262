"""
Main-context driver.

Owns the interaction state and the worker handle. Never blocks: worker
events are drained without waiting, and every host call is delegated to
the worker as a SessionRequest.
"""

import logging
import time
from typing import Callable, Optional

from ..config import Config
from ..ranking.scorer import Scorer
from ..worker.messages import (Create, Kill, LoadProjects, ProjectsLoaded, RecordAccess,
                               RefreshSessions, ReloadConfig, ScanProgress, SessionRequest,
                               SessionResult, SessionsUpdated, SnapshotUpdated, StartScan,
                               Switch, WorkerError)
from ..worker.worker import Worker
from .sessions import decide
from .state import Close, InteractionState, Select

log = logging.getLogger(__name__)


class Plugin:
    """
    Picker session: state machine + worker + host bridge.

    Usage:
        plugin = Plugin(config, Worker(config, host=TmuxHost()))
        plugin.start()
        plugin.grant_permissions()
        while not plugin.closed:
            if plugin.tick() or plugin.handle_key(read_key()):
                draw(plugin.state)
    """

    def __init__(self, config: Config, worker: Optional[Worker] = None,
                 permitted: bool = False, clock: Callable[[], float] = time.time):
        self.config = config
        self.worker = worker if worker is not None else Worker(config)
        self.clock = clock
        self.state = InteractionState(Scorer(config.half_life_seconds), clock=clock)
        self.permitted = permitted
        self.scan_queued = False
        self.scanning = {}            # root -> projects found so far
        self.pending_request = None   # Switch/Create awaiting its result
        self.opened = None            # Switch/Create the host accepted
        self.closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, run_worker: bool = True) -> None:
        if run_worker:
            self.worker.start()
        self.worker.post(LoadProjects())
        self.request_scan()

    def request_scan(self, roots=()) -> None:
        """Scan now, or as soon as permissions are granted."""
        if not self.permitted:
            self.scan_queued = True
            return
        self.worker.post(StartScan(tuple(str(r) for r in roots)))
        self.worker.post(RefreshSessions())

    def grant_permissions(self) -> None:
        self.permitted = True
        if self.scan_queued:
            self.scan_queued = False
            log.debug("permissions granted, replaying queued scan")
            self.request_scan()

    def reload(self, config: Config) -> None:
        self.config = config
        self.state.scorer = Scorer(config.half_life_seconds)
        self.worker.post(ReloadConfig(config))

    def shutdown(self) -> None:
        self.closed = True
        self.worker.stop()

    # =========================================================================
    # Worker Events
    # =========================================================================

    def tick(self) -> bool:
        """Apply every pending worker event; True if a redraw is needed."""
        render = False
        for event in self.worker.outbox.drain():
            render = self.apply(event) or render
        return render

    def apply(self, event) -> bool:
        if isinstance(event, (ProjectsLoaded, SnapshotUpdated)):
            return self.state.update_snapshot(event.snapshot)
        if isinstance(event, SessionsUpdated):
            return self.state.update_sessions(event.sessions)
        if isinstance(event, ScanProgress):
            if event.done:
                self.scanning.pop(event.root, None)
            else:
                self.scanning[event.root] = event.found
            return False
        if isinstance(event, SessionResult):
            return self._session_result(event)
        if isinstance(event, WorkerError):
            log.warning("worker %s error: %s", event.kind, event.message)
            return self.state.set_notice(f"{event.kind} error: {event.message}")
        log.debug("unhandled worker event %r", event)
        return False

    def _session_result(self, result: SessionResult) -> bool:
        if result.action == self.pending_request:
            self.pending_request = None
        if not result.ok:
            return self.state.set_notice(result.message or "session request failed")
        if isinstance(result.action, (Switch, Create)):
            self.opened = result.action
            self.closed = True
        return False

    # =========================================================================
    # Keys
    # =========================================================================

    def handle_key(self, key: str) -> bool:
        now = self.clock()
        render, actions = self.state.handle_key(key, now)
        for action in actions:
            self.execute(action, now)
        return render

    def execute(self, action, now: Optional[float] = None) -> None:
        now = self.clock() if now is None else now
        if isinstance(action, Close):
            self.closed = True
        elif isinstance(action, Select):
            self.select(action.project, now)
        elif isinstance(action, Kill):
            self.worker.post(SessionRequest(action))
        else:
            log.warning("unknown action %r ignored", action)

    def select(self, project, now: Optional[float] = None) -> None:
        """Record the access, then switch to or create the project's session."""
        now = self.clock() if now is None else now
        self.worker.post(RecordAccess(project.path, now))
        request = decide(project, self.state.sessions)
        self.pending_request = request
        self.worker.post(SessionRequest(request))
