"""
Terminal picker - curses front end for the interaction state machine.

Keys are read with a short timeout so worker events keep flowing into
the plugin between presses. Every key goes through Plugin.handle_key;
nothing here decides what a key means.
"""

import curses
import logging
import os
import time
from typing import Any, Callable, List, Optional, Tuple

from ..ranking.scorer import time_ago
from .modes import Search, Sessions, base_mode
from .plugin import Plugin
from .state import BACKSPACE, CTRL_N, CTRL_P, DOWN, ENTER, ESCAPE, LEFT, RIGHT, UP

log = logging.getLogger(__name__)

POLL_MS = 100
NAME_WIDTH = 32
HELP = "enter open  / search  n projects  s sessions  K kill  esc quit"

# curses key code -> key name understood by InteractionState
KEYS = {
    curses.KEY_UP: UP,
    curses.KEY_DOWN: DOWN,
    curses.KEY_LEFT: LEFT,
    curses.KEY_RIGHT: RIGHT,
    curses.KEY_ENTER: ENTER,
    10: ENTER,
    13: ENTER,
    27: ESCAPE,
    curses.KEY_BACKSPACE: BACKSPACE,
    127: BACKSPACE,
    8: BACKSPACE,
    14: CTRL_N,
    16: CTRL_P,
}


def translate(ch: int) -> Optional[str]:
    """Key name for a curses key code, or None for keys the picker ignores."""
    if ch in KEYS:
        return KEYS[ch]
    if 32 <= ch < 127:
        return chr(ch)
    return None


def segments(text: str, spans) -> List[Tuple[str, bool]]:
    """(run, highlighted) pieces covering `text`."""
    pieces = []
    pos = 0
    for start, end in spans:
        if start > pos:
            pieces.append((text[pos:start], False))
        pieces.append((text[start:end], True))
        pos = end
    if pos < len(text):
        pieces.append((text[pos:], False))
    return pieces


def put(stdscr: Any, y: int, x: int, text: str, width: int, attr: int = curses.A_NORMAL) -> int:
    """Write clipped text; returns the column after it."""
    room = width - x - 1
    if room <= 0:
        return x
    try:
        stdscr.addstr(y, x, text[:room], attr)
    except curses.error:
        pass
    return x + min(len(text), room)


# ============================================================================
# Drawing
# ============================================================================

def draw(stdscr: Any, plugin: Plugin, now: float) -> None:
    state = plugin.state
    mode = state.mode
    h, w = stdscr.getmaxyx()
    stdscr.erase()

    title = "Sessions" if isinstance(base_mode(mode), Sessions) else "Projects"
    header = f" zessionizer [{title}]"
    if isinstance(mode, Search):
        header += f"  /{mode.query}"
    if plugin.scanning:
        header += f"  scanning... {sum(plugin.scanning.values())} found"
    put(stdscr, 0, 0, header, w, curses.A_BOLD)

    rows = state.visible(now)
    selected = min(mode.selected, len(rows) - 1)
    height = max(0, h - 2)
    top = max(0, selected - height + 1)
    for line, index in enumerate(range(top, min(len(rows), top + height)), start=1):
        row = rows[index]
        project = row.project
        base = curses.A_REVERSE if index == selected else curses.A_NORMAL
        if state.is_current(project):
            mark = "*"
        elif state.is_active(project):
            mark = "+"
        else:
            mark = " "
        x = put(stdscr, line, 0, f"{'>' if index == selected else ' '}{mark} ", w, base)
        for text, lit in segments(project.name, row.spans):
            x = put(stdscr, line, x, text, w, base | curses.A_BOLD if lit else base)
        x = put(stdscr, line, x, " " * max(1, NAME_WIDTH + 3 - x), w, base)
        put(stdscr, line, x, f"{time_ago(project.last_accessed, now):>10}  {project.path}", w, base)

    if not rows:
        put(stdscr, 1, 2, "No projects found.", w)
    footer = state.notice or HELP
    put(stdscr, h - 1, 0, footer, w, curses.A_BOLD if state.notice else curses.A_NORMAL)


# ============================================================================
# Loop
# ============================================================================

def run_picker(plugin: Plugin, stdscr: Any, clock: Callable[[], float] = time.time) -> None:
    """Drive `plugin` from `stdscr` until it closes."""
    stdscr.timeout(POLL_MS)
    dirty = True
    while not plugin.closed:
        dirty = plugin.tick() or dirty
        if dirty:
            draw(stdscr, plugin, clock())
            stdscr.refresh()
            dirty = False

        try:
            ch = stdscr.getch()
        except curses.error:
            ch = -1
        if ch == curses.KEY_RESIZE:
            dirty = True
            continue
        key = translate(ch) if ch >= 0 else None
        if key is not None:
            dirty = plugin.handle_key(key) or dirty


def pick(plugin: Plugin) -> None:
    """Run the picker on the controlling terminal."""
    # Escape must not wait a full second for a possible key sequence
    os.environ.setdefault("ESCDELAY", "25")

    def _loop(stdscr: Any) -> None:
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        run_picker(plugin, stdscr)

    curses.wrapper(_loop)
    log.debug("picker closed, opened=%r", plugin.opened)
