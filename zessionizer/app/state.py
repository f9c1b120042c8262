"""
Interaction State Machine.

Pure input handling: keys in, (should_render, actions) out. Nothing here
touches the filesystem or the host; actions are executed by the driver.
The visible list is derived from the latest snapshot, the live sessions
and the mode, and the selection is re-clamped whenever any of them change.
"""

import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from ..index.registry import EMPTY_SNAPSHOT, Snapshot
from ..ranking.matcher import DEFAULT_WEIGHTS, MatchWeights, Ranked, rank
from ..ranking.scorer import Scorer
from ..worker.messages import Kill, SessionList
from .modes import Mode, Projects, Search, Sessions, base_mode, clamp
from .sessions import session_name

# Key names delivered by the host terminal
UP = "Up"
DOWN = "Down"
LEFT = "Left"
RIGHT = "Right"
ENTER = "Enter"
ESCAPE = "Escape"
BACKSPACE = "Backspace"
CTRL_N = "Ctrl-n"
CTRL_P = "Ctrl-p"

NEXT_KEYS = frozenset({DOWN, CTRL_N})
PREV_KEYS = frozenset({UP, CTRL_P})


@dataclass(frozen=True)
class Select:
    project: object


@dataclass(frozen=True)
class Close:
    pass


Action = object


class InteractionState:
    """
    Mode, snapshot and session view for the picker.

    Usage:
        state = InteractionState(Scorer())
        state.update_snapshot(snapshot)
        render, actions = state.handle_key("/")
    """

    def __init__(self, scorer: Optional[Scorer] = None,
                 weights: MatchWeights = DEFAULT_WEIGHTS,
                 clock: Callable[[], float] = time.time):
        self.scorer = scorer or Scorer()
        self.weights = weights
        self.clock = clock
        self.mode: Mode = Projects()
        self.snapshot: Snapshot = EMPTY_SNAPSHOT
        self.sessions = SessionList()
        self.last_query = ""
        self.notice: Optional[str] = None

    # =========================================================================
    # View
    # =========================================================================

    def is_active(self, project) -> bool:
        return session_name(project) in self.sessions.names

    def is_current(self, project) -> bool:
        """True for the project whose session the host client is attached to."""
        return self.sessions.current is not None and \
            session_name(project) == self.sessions.current

    def visible(self, now: Optional[float] = None) -> List[Ranked]:
        """Rows for the current mode, in display order."""
        now = self.clock() if now is None else now
        projects = self.snapshot.projects
        if isinstance(base_mode(self.mode), Sessions):
            projects = [p for p in projects if self.is_active(p)]
        if isinstance(self.mode, Search):
            return rank(projects, self.mode.query, self.scorer, now, search=True,
                        weights=self.weights)
        return rank(projects, "", self.scorer, now, weights=self.weights)

    def selected_row(self, now: Optional[float] = None) -> Optional[Ranked]:
        rows = self.visible(now)
        if not rows:
            return None
        return rows[min(self.mode.selected, len(rows) - 1)]

    def _reclamp(self, now: Optional[float] = None):
        self.mode = clamp(self.mode, len(self.visible(now)))

    # =========================================================================
    # Worker updates
    # =========================================================================

    def update_snapshot(self, snapshot: Snapshot) -> bool:
        """Adopt a newer snapshot; stale or repeated versions are ignored."""
        if snapshot.version < self.snapshot.version:
            return False
        if snapshot == self.snapshot:
            return False
        self.snapshot = snapshot
        self._reclamp()
        return True

    def update_sessions(self, sessions: SessionList) -> bool:
        if sessions == self.sessions:
            return False
        self.sessions = sessions
        self._reclamp()
        return True

    def set_notice(self, message: Optional[str]) -> bool:
        self.notice = message
        return True

    # =========================================================================
    # Keys
    # =========================================================================

    def handle_key(self, key: str, now: Optional[float] = None) -> Tuple[bool, List[Action]]:
        """
        Apply one key press.

        Returns:
            (should_render, actions) where actions are Select, Kill or Close
        """
        now = self.clock() if now is None else now
        had_notice = self.notice is not None
        self.notice = None
        if isinstance(self.mode, Search):
            render, actions = self._search_key(self.mode, key, now)
        else:
            render, actions = self._browse_key(key, now)
        return render or had_notice, actions

    def _browse_key(self, key: str, now: float) -> Tuple[bool, List[Action]]:
        if key == "n":
            return self._enter(Projects(), now), []
        if key == "s":
            return self._enter(Sessions(), now), []
        if key == "/":
            query = self.last_query
            search = Search(query=query, cursor=len(query), prior=base_mode(self.mode))
            return self._enter(search, now), []
        if key in (ESCAPE, "q"):
            return False, [Close()]
        if key == "j" or key in NEXT_KEYS:
            return self._move(1, now), []
        if key == "k" or key in PREV_KEYS:
            return self._move(-1, now), []
        if key == ENTER:
            return self._select(now)
        if key == "K":
            return self._kill(now)
        return False, []

    def _search_key(self, mode: Search, key: str, now: float) -> Tuple[bool, List[Action]]:
        if key == ESCAPE:
            self.last_query = mode.query
            return self._enter(mode.prior, now), []
        if key == ENTER:
            if not self.visible(now):
                self.last_query = ""
                return self._enter(Projects(), now), []
            self.last_query = mode.query
            return self._select(now)
        if key == BACKSPACE:
            return self._set(mode.backspace(), now), []
        if key == LEFT:
            return self._set(mode.move_cursor(-1), now), []
        if key == RIGHT:
            return self._set(mode.move_cursor(1), now), []
        if key in NEXT_KEYS:
            return self._move(1, now), []
        if key in PREV_KEYS:
            return self._move(-1, now), []
        if len(key) == 1 and key.isprintable():
            return self._set(mode.insert(key), now), []
        return False, []

    # =========================================================================
    # Transitions
    # =========================================================================

    def _enter(self, mode: Mode, now: float) -> bool:
        self.mode = mode
        self._reclamp(now)
        return True

    def _set(self, mode: Mode, now: float) -> bool:
        if mode == self.mode:
            return False
        self.mode = mode
        self._reclamp(now)
        return True

    def _move(self, delta: int, now: float) -> bool:
        count = len(self.visible(now))
        if not count:
            return False
        selected = max(0, min(count - 1, self.mode.selected + delta))
        if selected == self.mode.selected:
            return False
        return self._set(replace(self.mode, selected=selected), now)

    def _select(self, now: float) -> Tuple[bool, List[Action]]:
        row = self.selected_row(now)
        if row is None:
            return False, []
        return False, [Select(row.project)]

    def _kill(self, now: float) -> Tuple[bool, List[Action]]:
        row = self.selected_row(now)
        if row is None or not self.is_active(row.project):
            return False, []
        return False, [Kill(session_name(row.project))]
