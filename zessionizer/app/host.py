"""
Session hosts - the external program that owns terminal sessions.

The worker makes every call except `attach`, which blocks and so only
runs in the main context once the picker has closed. Every method raises
HostError on failure so it can be surfaced as a transient condition.
"""

import logging
import os
import subprocess
import time
from typing import Callable, List, Mapping, Optional, Tuple

from ..errors import HostError
from ..worker.messages import SessionList

log = logging.getLogger(__name__)

Runner = Callable[[List[str], int], Tuple[int, str, str]]


class Host:
    """Interface every session host implements."""

    def list_sessions(self) -> SessionList:
        raise NotImplementedError

    def switch(self, name: str, cwd: str) -> None:
        raise NotImplementedError

    def create(self, name: str, cwd: str) -> None:
        raise NotImplementedError

    def kill(self, name: str) -> None:
        raise NotImplementedError

    @property
    def needs_attach(self) -> bool:
        """True when `switch` only prepares the session and `attach` must follow."""
        return False

    def attach(self, name: str) -> None:
        pass


# ============================================================================
# tmux
# ============================================================================

def run(cmd: List[str], timeout: int = 10) -> Tuple[int, str, str]:
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, PermissionError) as exc:
        return 1, "", str(exc)
    return proc.returncode, proc.stdout, proc.stderr


def attach(name: str) -> int:
    """Attach the controlling terminal to a session (blocks until detach)."""
    proc = subprocess.run(["tmux", "attach-session", "-t", name], check=False)
    return int(proc.returncode)


class TmuxHost(Host):
    """
    Sessions backed by a tmux server.

    Inside tmux ($TMUX set) the current client is switched. Outside it,
    `switch` only checks the session exists; the caller attaches the
    terminal with `attach` after it has stopped the worker.
    """

    def __init__(self, runner: Runner = run, attacher: Callable[[str], int] = attach,
                 environ: Optional[Mapping[str, str]] = None):
        self.runner = runner
        self.attacher = attacher
        self.environ = os.environ if environ is None else environ

    def tmux(self, args: List[str], timeout: int = 10) -> Tuple[int, str, str]:
        for attempt in range(2):
            code, out, err = self.runner(["tmux", *args], timeout)
            if code == 0:
                return code, out, err
            if "server exited unexpectedly" in (err or "").lower() and attempt == 0:
                time.sleep(0.15)
                continue
            return code, out, err
        return 1, "", "tmux command failed"

    @property
    def inside(self) -> bool:
        return bool(self.environ.get("TMUX"))

    @property
    def needs_attach(self) -> bool:
        return not self.inside

    def list_sessions(self) -> SessionList:
        code, out, err = self.tmux(["list-sessions", "-F", "#{session_name}"], timeout=5)
        if code != 0:
            msg = (err or "").strip()
            if "no server running" in msg.lower() or "error connecting" in msg.lower():
                return SessionList()
            raise HostError(msg or "tmux list-sessions failed")
        names = frozenset(line.strip() for line in out.splitlines() if line.strip())

        current = None
        if self.inside:
            code, out, _ = self.tmux(["display-message", "-p", "#{session_name}"], timeout=5)
            if code == 0 and out.strip():
                current = out.strip()
        return SessionList(names=names, current=current)

    def switch(self, name: str, cwd: str) -> None:
        if self.inside:
            code, _, err = self.tmux(["switch-client", "-t", name], timeout=5)
            if code != 0:
                raise HostError(err.strip() or f"failed to switch to '{name}'")
            return
        code, _, err = self.tmux(["has-session", "-t", name], timeout=5)
        if code != 0:
            raise HostError(err.strip() or f"no session named '{name}'")

    def attach(self, name: str) -> None:
        """Attach the controlling terminal; blocks until the user detaches."""
        code = self.attacher(name)
        if code != 0:
            raise HostError(f"failed to attach to '{name}' (exit {code})")

    def create(self, name: str, cwd: str) -> None:
        code, _, err = self.tmux(["new-session", "-d", "-s", name, "-c", cwd], timeout=5)
        if code != 0:
            raise HostError(err.strip() or f"failed to create session '{name}'")
        log.info("created session %s in %s", name, cwd)
        if self.inside:
            self.switch(name, cwd)

    def kill(self, name: str) -> None:
        code, _, err = self.tmux(["kill-session", "-t", name], timeout=5)
        if code != 0:
            raise HostError(err.strip() or f"failed to kill session '{name}'")
        log.info("killed session %s", name)
